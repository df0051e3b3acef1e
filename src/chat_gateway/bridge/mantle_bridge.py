"""
Bedrock Mantle side of the bridge.

Proxies the regional OpenAI-compatible Mantle endpoint. The caller's API key
and region arrive in the X-Mantle-Api-Key and X-Mantle-Region headers; the
upstream chunk stream is re-framed into the SSE envelope, including the
`reasoning` deltas some models emit.
"""

import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..adapters.http_base import error_message_from_body
from ..adapters.lmstudio_adapter import openai_delta, openai_usage
from ..adapters.mantle_adapter import (
    DEFAULT_REGION,
    MANTLE_REGIONS,
    list_regions as supported_regions,
    mantle_endpoint,
)
from ..core.errors import DecodeError
from ..streaming.frames import SSEFrameDecoder
from ..streaming.sideband import usage_to_payload
from .envelope import (
    DONE_EVENT,
    SSE_HEADERS,
    BridgeError,
    content_event,
    metadata_event,
    reasoning_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mantle", tags=["mantle"])

PROVIDER_NAMES = {
    "nvidia": "NVIDIA",
    "openai": "OpenAI",
    "mistral": "Mistral",
    "qwen": "Qwen",
    "minimax": "MiniMax",
    "meta": "Meta",
    "anthropic": "Anthropic",
    "cohere": "Cohere",
    "ai21": "AI21",
    "amazon": "Amazon",
}

MODEL_FAMILIES = {
    "nvidia": "NVIDIA",
    "openai": "OpenAI",
    "mistral": "Mistral AI",
    "qwen": "Alibaba Qwen",
    "minimax": "MiniMax",
    "meta": "Meta AI",
    "anthropic": "Anthropic",
    "cohere": "Cohere",
    "ai21": "AI21 Labs",
    "amazon": "Amazon",
}

_UPPERCASE_WORDS = {"a3b", "a22b", "oss"}


class MantleMessage(BaseModel):
    role: str
    content: Union[str, List[Any]] = ""


class MantleChatBody(BaseModel):
    model: str
    messages: List[MantleMessage]
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    stream: bool = True


class MantleCredentials(BaseModel):
    api_key: str
    region: str

    @property
    def base_url(self) -> str:
        return mantle_endpoint(self.region)

    @property
    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


def format_provider_name(provider: str) -> str:
    return PROVIDER_NAMES.get(provider.lower(), provider[:1].upper() + provider[1:])


def _format_word(word: str) -> str:
    if re.fullmatch(r"\d+b", word, re.IGNORECASE):
        return word.upper()
    if re.fullmatch(r"v\d+", word, re.IGNORECASE):
        return word.lower()
    if re.fullmatch(r"\d{4}", word):
        return word
    if word.lower() in _UPPERCASE_WORDS:
        return word.upper()
    return word[:1].upper() + word[1:].lower()


def format_model_name(model_id: str) -> str:
    """
    Friendly display name for a Mantle model id.

    "nvidia.nemotron-nano-9b-v2" -> "NVIDIA Nemotron Nano 9B v2"
    """
    provider, _, model_part = model_id.partition(".")
    words = " ".join(_format_word(w) for w in model_part.split("-") if w)
    return f"{format_provider_name(provider)} {words}".strip()


def get_model_family(model_id: str) -> str:
    provider = model_id.split(".")[0].lower()
    return MODEL_FAMILIES.get(provider, "Bedrock Mantle")


def mantle_credentials(
    x_mantle_api_key: Optional[str] = Header(default=None),
    x_mantle_region: Optional[str] = Header(default=None),
) -> MantleCredentials:
    """Validate the API key and region headers."""
    if not x_mantle_api_key:
        raise BridgeError(
            401,
            "Bedrock Mantle API key is required",
            error_type="MissingApiKey",
            detail="Configure a Bedrock Mantle API key to use Mantle endpoints.",
        )

    region = x_mantle_region or DEFAULT_REGION
    if region not in MANTLE_REGIONS:
        raise BridgeError(
            400,
            f"Invalid region: {region}",
            error_type="InvalidRegion",
            detail=f"Supported regions: {', '.join(MANTLE_REGIONS)}",
        )

    return MantleCredentials(api_key=x_mantle_api_key, region=region)


def get_mantle_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.mantle_http_client


def upstream_error(status_code: int, body: bytes) -> BridgeError:
    """Map an upstream error status onto a bridge error."""
    message = error_message_from_body(body, status_code)
    if status_code == 401:
        return BridgeError(
            401,
            "Invalid Bedrock Mantle API key. Please check your API key.",
            error_type="Unauthorized",
            detail=message,
        )
    if status_code == 403:
        return BridgeError(
            403,
            "Access denied. Your API key may not have access to this resource.",
            error_type="Forbidden",
            detail=message,
        )
    if 400 <= status_code < 500:
        return BridgeError(status_code, message, error_type="UpstreamError")
    return BridgeError(502, f"Mantle upstream error: {message}", error_type="UpstreamError")


def build_upstream_body(body: MantleChatBody) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": body.model,
        "messages": [
            {
                "role": m.role,
                "content": m.content if isinstance(m.content, str) else json.dumps(m.content),
            }
            for m in body.messages
        ],
        "stream": body.stream,
    }
    if body.stream:
        payload["stream_options"] = {"include_usage": True}
    for key in ("temperature", "max_tokens", "top_p"):
        value = getattr(body, key)
        if value is not None:
            payload[key] = value
    return payload


async def reframe_stream(response: httpx.Response) -> AsyncIterator[str]:
    """Re-frame an upstream OpenAI chunk stream as the SSE envelope."""
    decoder = SSEFrameDecoder(provider="bedrock-mantle")

    try:
        async for chunk in response.aiter_bytes():
            for frame in decoder.feed(chunk):
                try:
                    content, reasoning = openai_delta(frame)
                    usage = openai_usage(frame)
                except DecodeError as e:
                    decoder.reject(frame, e)
                    continue

                if reasoning:
                    yield reasoning_event(reasoning)
                if content:
                    yield content_event(content)
                if usage is not None:
                    logger.debug(f"Mantle: usage {usage}")
                    yield metadata_event(usage_to_payload(usage)["usage"])
            if decoder.done:
                break
    except httpx.HTTPError as e:
        logger.error(f"Mantle: upstream stream broke: {e}")
        raise
    finally:
        await response.aclose()

    decoder.finish()
    if not decoder.done:
        # Truncated upstream: no terminator
        logger.error("Mantle: upstream stream ended without [DONE]")
        return
    yield DONE_EVENT


@router.get("/regions")
def list_regions():
    return {"regions": supported_regions()}


@router.get("/models")
async def list_models(
    credentials: MantleCredentials = Depends(mantle_credentials),
    client: httpx.AsyncClient = Depends(get_mantle_http_client),
):
    url = f"{credentials.base_url}/models"
    logger.info(f"Mantle: fetching models from {url}")

    try:
        response = await client.get(url, headers=credentials.auth_headers)
    except httpx.HTTPError as e:
        raise BridgeError(502, f"Cannot reach Mantle endpoint: {e}", error_type=e.__class__.__name__)

    if not response.is_success:
        raise upstream_error(response.status_code, response.content)

    models = [
        {
            "modelId": entry["id"],
            "modelName": format_model_name(entry["id"]),
            "provider": "bedrock-mantle",
            "modelFamily": get_model_family(entry["id"]),
            "ownedBy": entry.get("owned_by"),
        }
        for entry in response.json().get("data", [])
        if entry.get("id")
    ]

    logger.info(f"Mantle: found {len(models)} models in {credentials.region}")
    return {"models": models}


@router.post("/chat")
async def chat(
    body: MantleChatBody,
    credentials: MantleCredentials = Depends(mantle_credentials),
    client: httpx.AsyncClient = Depends(get_mantle_http_client),
):
    logger.info(
        f"Mantle: chat request for {body.model} in {credentials.region} "
        f"({len(body.messages)} messages)"
    )

    request = client.build_request(
        "POST",
        f"{credentials.base_url}/chat/completions",
        json=build_upstream_body(body),
        headers=credentials.auth_headers,
    )

    try:
        response = await client.send(request, stream=body.stream)
    except httpx.HTTPError as e:
        raise BridgeError(502, f"Cannot reach Mantle endpoint: {e}", error_type=e.__class__.__name__)

    if not response.is_success:
        error_body = await response.aread()
        await response.aclose()
        raise upstream_error(response.status_code, error_body)

    if not body.stream:
        data = response.json()
        choices = data.get("choices") or [{}]
        try:
            usage = openai_usage(data)
        except DecodeError as e:
            logger.warning(f"Mantle: ignoring malformed usage: {e}")
            usage = None
        return {
            "content": (choices[0].get("message") or {}).get("content") or "",
            "usage": usage_to_payload(usage)["usage"] if usage is not None else None,
        }

    return StreamingResponse(
        reframe_stream(response),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
