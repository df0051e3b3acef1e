"""
Bedrock side of the bridge.

Lists system-defined inference profiles and streams ConverseStream output as
the SSE envelope. AWS credentials come from the usual boto3 chain; they never
reach the gateway.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Iterator, List, Optional, Union

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..models.attachments import is_image_format, sanitize_filename
from .envelope import DONE_EVENT, SSE_HEADERS, BridgeError, content_event, metadata_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bedrock", tags=["bedrock"])

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TOP_P = 0.9

# Models that reject temperature and topP together
_NO_TOP_P_MARKERS = ("sonnet-4-5", "haiku-4-5")

_EXCLUDED_MODEL_MARKERS = ("embed", "stable-image", "twelvelabs")


class BridgeFile(BaseModel):
    name: str = "document"
    format: str
    bytes: str


class BridgeMessage(BaseModel):
    role: str
    content: Union[str, List[Dict[str, Any]]] = ""
    files: Optional[List[BridgeFile]] = None


class BedrockChatBody(BaseModel):
    model: str
    messages: List[BridgeMessage]
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)


def get_bedrock_client(request: Request):
    """boto3 `bedrock` client held on the application state."""
    return request.app.state.bedrock_client


def get_bedrock_runtime_client(request: Request):
    """boto3 `bedrock-runtime` client held on the application state."""
    return request.app.state.bedrock_runtime_client


def map_aws_error(e: Exception) -> BridgeError:
    """Translate a boto3 failure into a bridge error response."""
    if isinstance(e, NoCredentialsError):
        return BridgeError(
            401,
            "AWS credentials not found. Please configure AWS credentials in your environment.",
            error_type=e.__class__.__name__,
            detail=str(e),
        )

    if isinstance(e, ClientError):
        code = e.response.get("Error", {}).get("Code", "ClientError")
        message = e.response.get("Error", {}).get("Message", str(e))
        if code == "AccessDeniedException":
            return BridgeError(
                403,
                "Access denied to Amazon Bedrock. Check IAM permissions.",
                error_type=code,
                detail=message,
            )
        if code == "ValidationException":
            return BridgeError(400, message, error_type=code)
        if code == "ThrottlingException":
            return BridgeError(429, message, error_type=code)
        return BridgeError(500, "Internal server error", error_type=code, detail=message)

    return BridgeError(500, "Internal server error", error_type=e.__class__.__name__, detail=str(e))


def detect_model_family(name: str, model_arn: str = "") -> str:
    """Model family from a profile's display name or underlying model ARN."""
    name = name.lower()
    arn = model_arn.lower()

    if "claude" in name or "anthropic" in name or "anthropic" in arn:
        return "Anthropic Claude"
    if "llama" in name or "meta" in arn:
        return "Meta Llama"
    if "mistral" in name or "mistral" in arn:
        return "Mistral AI"
    if "titan" in name or "amazon" in arn:
        return "Amazon Titan"
    if "jamba" in name or "ai21" in arn:
        return "AI21 Labs"
    if "command" in name or "cohere" in arn:
        return "Cohere"
    return "Other"


def is_anthropic(model_name: str) -> bool:
    name = model_name.lower()
    return "anthropic" in name or "claude" in name


def list_inference_profiles(client) -> List[Dict[str, Any]]:
    """All system-defined inference profiles, following pagination."""
    profiles: List[Dict[str, Any]] = []
    params: Dict[str, Any] = {"maxResults": 100, "typeEquals": "SYSTEM_DEFINED"}

    while True:
        response = client.list_inference_profiles(**params)
        profiles.extend(response.get("inferenceProfileSummaries", []))
        next_token = response.get("nextToken")
        if not next_token:
            break
        params["nextToken"] = next_token

    logger.info(f"Bedrock: found {len(profiles)} inference profiles")
    return profiles


def models_from_profiles(profiles: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Chat-capable models from inference profiles.

    Embedding and image models are dropped, duplicate ids collapse to the
    last profile seen, and Anthropic models sort first, then by name.
    """
    models: Dict[str, Dict[str, Any]] = {}

    for profile in profiles:
        profile_models = profile.get("models") or []
        if not profile_models:
            continue

        model_arn = profile_models[0].get("modelArn", "")
        if any(marker in model_arn.lower() for marker in _EXCLUDED_MODEL_MARKERS):
            continue

        model_id = profile.get("inferenceProfileId", "")
        display_name = profile.get("inferenceProfileName") or model_id
        models[model_id] = {
            "modelId": model_id,
            "modelName": display_name,
            "provider": "bedrock",
            "profileType": profile.get("type", "UNKNOWN"),
            "modelFamily": detect_model_family(display_name, model_arn),
        }

    return sorted(
        models.values(),
        key=lambda m: (not is_anthropic(m["modelName"]), m["modelName"].lower()),
    )


def build_inference_config(
    model: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    top_p: Optional[float] = None,
) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        "maxTokens": DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
    }
    if not any(marker in model for marker in _NO_TOP_P_MARKERS):
        config["topP"] = DEFAULT_TOP_P if top_p is None else top_p
    return config


def _decode_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, TypeError, ValueError):
        raise BridgeError(400, "Attachment bytes are not valid base64", error_type="ValidationException")


def _content_blocks(content: Union[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}] if content else []

    blocks = []
    for part in content:
        if part.get("text"):
            blocks.append({"text": part["text"]})
        elif part.get("document"):
            document = part["document"]
            blocks.append({
                "document": {
                    "name": sanitize_filename(document.get("name") or "document", strip_extension=False),
                    "format": document["format"],
                    "source": {"bytes": _decode_bytes(document["source"]["bytes"])},
                }
            })
    return blocks


def _file_block(file: BridgeFile) -> Dict[str, Any]:
    data = _decode_bytes(file.bytes)
    if is_image_format(file.format):
        return {"image": {"format": file.format, "source": {"bytes": data}}}

    name = sanitize_filename(file.name, strip_extension=False)
    logger.debug(f"Bedrock: file {file.name!r} -> {name!r}, {file.format}, {len(data)} bytes")
    return {"document": {"name": name, "format": file.format, "source": {"bytes": data}}}


def to_converse_messages(messages: List[BridgeMessage]):
    """
    Split chat messages into Converse `system` blocks and `messages`.

    Returns:
        (system, messages) tuple
    """
    system: List[Dict[str, str]] = []
    converse: List[Dict[str, Any]] = []

    for msg in messages:
        if msg.role == "system":
            text = msg.content if isinstance(msg.content, str) else ""
            if text:
                system.append({"text": text})
            continue

        blocks = _content_blocks(msg.content)
        for file in msg.files or []:
            blocks.append(_file_block(file))

        converse.append({
            "role": "user" if msg.role == "user" else "assistant",
            "content": blocks,
        })

    return system, converse


def converse_events(stream) -> Iterator[str]:
    """
    Re-frame a ConverseStream event stream as the SSE envelope.

    Text deltas become `content` events; the final metadata event (usage and
    latency) is sent once after the text, followed by `[DONE]`.
    """
    metadata = None

    for event in stream:
        delta = event.get("contentBlockDelta", {}).get("delta", {})
        if delta.get("text"):
            yield content_event(delta["text"])

        if "metadata" in event:
            metadata = event["metadata"]

    if metadata is not None:
        yield metadata_event(metadata.get("usage"), metadata.get("metrics"))

    yield DONE_EVENT


@router.get("/models")
def list_models(client=Depends(get_bedrock_client)):
    try:
        models = models_from_profiles(list_inference_profiles(client))
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Bedrock: model listing failed: {e}")
        raise map_aws_error(e)

    logger.info(f"Bedrock: returning {len(models)} models")
    return {"models": models}


@router.post("/chat")
def chat(body: BedrockChatBody, runtime=Depends(get_bedrock_runtime_client)):
    logger.info(f"Bedrock: chat request for {body.model} ({len(body.messages)} messages)")

    system, messages = to_converse_messages(body.messages)
    params: Dict[str, Any] = {
        "modelId": body.model,
        "messages": messages,
        "inferenceConfig": build_inference_config(
            body.model, body.temperature, body.max_tokens, body.top_p
        ),
    }
    if system:
        params["system"] = system

    try:
        response = runtime.converse_stream(**params)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Bedrock: converse_stream failed: {e}")
        raise map_aws_error(e)

    stream = response.get("stream")
    if stream is None:
        raise BridgeError(500, "No stream in response")

    return StreamingResponse(
        converse_events(stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
