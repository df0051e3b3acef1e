"""
LM Studio adapter.

Talks to a local OpenAI-compatible server (LM Studio by default). Streams
over SSE with `stream_options.include_usage` so the final chunk carries
token counts.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

from ..core.errors import DecodeError
from ..core.interface import ProviderCapability
from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..models.response import ModelDescriptor, UsageRecord
from ..streaming.frames import Frame, SSEFrameDecoder, as_count, as_object, as_text
from ..streaming.sideband import LMSTUDIO_SENTINEL
from .http_base import HttpStreamingAdapter

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TOP_P = 0.9


def openai_delta(frame: Frame) -> Tuple[Optional[str], Optional[str]]:
    """
    (content, reasoning) from `choices[0].delta` of an OpenAI stream chunk.

    Raises:
        DecodeError: If the chunk does not have the expected shape
    """
    choices = frame.get("choices") or []
    if not isinstance(choices, list):
        raise DecodeError("choices is not a list")
    if not choices:
        return None, None

    choice = as_object(choices[0], "choices[0]")
    delta = as_object(choice.get("delta"), "choices[0].delta")
    return (
        as_text(delta.get("content"), "delta.content"),
        as_text(delta.get("reasoning"), "delta.reasoning"),
    )


def openai_usage(frame: Frame) -> Optional[UsageRecord]:
    """
    Usage from the top-level `usage` object of an OpenAI stream chunk.

    Raises:
        DecodeError: If `usage` is present but malformed
    """
    if frame.get("usage") is None:
        return None
    usage = as_object(frame["usage"], "usage")
    return UsageRecord(
        input_tokens=as_count(usage.get("prompt_tokens"), "usage.prompt_tokens"),
        output_tokens=as_count(usage.get("completion_tokens"), "usage.completion_tokens"),
        total_tokens=as_count(usage.get("total_tokens"), "usage.total_tokens"),
    )


def is_embedding_model(model_id: str) -> bool:
    return "embed" in model_id.lower()


class LMStudioAdapter(HttpStreamingAdapter):
    """
    Local OpenAI-compatible server adapter.

    No API key is required. Only chat models are listed; embedding models
    loaded alongside them are filtered out.
    """

    DEFAULT_BASE_URL = "http://localhost:1234/v1"
    PROBE_PATH = "/models"

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.LMSTUDIO

    @property
    def sentinel(self) -> str:
        return LMSTUDIO_SENTINEL

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.STREAMING,
            ProviderCapability.USAGE_REPORTING,
            ProviderCapability.MODEL_DISCOVERY,
        }

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        payload = {
            "model": request.model,
            "messages": request.to_openai_messages(),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        payload.update(request.sampling_params(
            temperature=DEFAULT_TEMPERATURE,
            max_tokens=DEFAULT_MAX_TOKENS,
            top_p=DEFAULT_TOP_P,
        ))
        return payload

    async def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        codec = self.codec
        decoder = SSEFrameDecoder(provider=self.name)

        async for frame in self._stream_frames(
            "/chat/completions",
            self._build_payload(request),
            decoder,
            request.cancellation_token,
        ):
            try:
                content, _ = openai_delta(frame)
                usage = openai_usage(frame)
            except DecodeError as e:
                decoder.reject(frame, e)
                continue

            if content:
                yield content

            if usage is not None:
                logger.debug(f"LM Studio usage: {usage}")
                yield codec.encode_usage(usage)

        logger.debug("LM Studio stream completed")

    async def list_models(self) -> List[ModelDescriptor]:
        data = await self._get_json("/models")
        entries = data.get("data") or [] if isinstance(data, dict) else []

        if not entries:
            logger.warning(
                "No models loaded in LM Studio. Load a model, or enable "
                "JIT loading in the server settings"
            )

        return [
            ModelDescriptor(
                model_id=entry["id"],
                display_name=entry["id"],
                provider_id=self.provider_id,
            )
            for entry in entries
            if isinstance(entry, dict) and entry.get("id") and not is_embedding_model(entry["id"])
        ]
