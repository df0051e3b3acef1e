"""
Ollama adapter.

Streams `/api/chat` as newline-delimited JSON. Each record carries a
`message.content` fragment; the final record (`done: true`) carries the
prompt and completion token counts and the total duration.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from ..core.errors import DecodeError
from ..core.interface import ProviderCapability
from ..models.attachments import is_image_format
from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..models.response import ModelDescriptor, UsageRecord
from ..streaming.frames import Frame, NDJSONFrameDecoder, as_count, as_object, as_text
from ..streaming.sideband import OLLAMA_SENTINEL
from .http_base import HttpStreamingAdapter
from .lmstudio_adapter import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    is_embedding_model,
)

logger = logging.getLogger(__name__)


def ollama_usage(frame: Frame) -> Optional[UsageRecord]:
    """
    Usage from a final `done` record, None for any other record.

    Raises:
        DecodeError: If a count or duration is not a number
    """
    if not frame.get("done"):
        return None

    prompt_tokens = as_count(frame.get("prompt_eval_count"), "prompt_eval_count")
    completion_tokens = as_count(frame.get("eval_count"), "eval_count")
    total = None
    if prompt_tokens is not None or completion_tokens is not None:
        total = (prompt_tokens or 0) + (completion_tokens or 0)

    duration_ns = as_count(frame.get("total_duration"), "total_duration")
    latency_ms = int(duration_ns / 1_000_000) if duration_ns is not None else None

    usage = UsageRecord(
        input_tokens=prompt_tokens,
        output_tokens=completion_tokens,
        total_tokens=total,
        latency_ms=latency_ms,
    )
    return None if usage.is_empty() else usage


def ollama_content(frame: Frame) -> Optional[str]:
    message = as_object(frame.get("message"), "message")
    return as_text(message.get("content"), "message.content")


class OllamaAdapter(HttpStreamingAdapter):
    """
    Ollama adapter for local LLM inference.

    Features:
    - Local inference (no API keys required)
    - Image attachments for multimodal models (passed as `images`)
    - Usage from the final stream record
    """

    DEFAULT_BASE_URL = "http://localhost:11434"
    PROBE_PATH = "/api/tags"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        keep_alive: Optional[str] = None,
        num_ctx: Optional[int] = None,
        **kwargs,
    ):
        """
        Initialize Ollama adapter.

        Args:
            base_url: Ollama server URL (default: http://localhost:11434)
            timeout: Request timeout in seconds (longer for local inference)
            keep_alive: How long to keep the model loaded (e.g. "5m")
            num_ctx: Context window size override
        """
        super().__init__(base_url=base_url, timeout=timeout, **kwargs)
        self._keep_alive = keep_alive
        self._num_ctx = num_ctx

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.OLLAMA

    @property
    def sentinel(self) -> str:
        return OLLAMA_SENTINEL

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.STREAMING,
            ProviderCapability.USAGE_REPORTING,
            ProviderCapability.LATENCY_REPORTING,
            ProviderCapability.VISION,
            ProviderCapability.MODEL_DISCOVERY,
        }

    def _build_options(self, request: ChatRequest) -> Dict[str, Any]:
        params = request.sampling_params(
            temperature=DEFAULT_TEMPERATURE,
            max_tokens=DEFAULT_MAX_TOKENS,
            top_p=DEFAULT_TOP_P,
        )
        options = {
            "temperature": params.get("temperature"),
            "num_predict": params.get("max_tokens"),
            "top_p": params.get("top_p"),
        }
        if self._num_ctx is not None:
            options["num_ctx"] = self._num_ctx
        return {k: v for k, v in options.items() if v is not None}

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        messages = []
        for msg in request.messages:
            message: Dict[str, Any] = {"role": msg.role, "content": msg.text()}
            images = [
                a.base64_bytes for a in msg.attachments or [] if is_image_format(a.format)
            ]
            if images:
                message["images"] = images
            messages.append(message)

        payload = {
            "model": request.model,
            "messages": messages,
            "options": self._build_options(request),
            "stream": True,
        }
        if self._keep_alive:
            payload["keep_alive"] = self._keep_alive
        return payload

    async def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        codec = self.codec
        decoder = NDJSONFrameDecoder(provider=self.name)

        async for frame in self._stream_frames(
            "/api/chat",
            self._build_payload(request),
            decoder,
            request.cancellation_token,
        ):
            try:
                content = ollama_content(frame)
                usage = ollama_usage(frame)
            except DecodeError as e:
                decoder.reject(frame, e)
                continue

            if content:
                yield content

            if usage is not None:
                yield codec.encode_usage(usage)

    async def list_models(self) -> List[ModelDescriptor]:
        data = await self._get_json("/api/tags")
        models = data.get("models") or [] if isinstance(data, dict) else []

        return [
            ModelDescriptor(
                model_id=model["name"],
                display_name=model["name"],
                provider_id=self.provider_id,
                family=(model.get("details") or {}).get("family"),
            )
            for model in models
            if isinstance(model, dict) and model.get("name") and not is_embedding_model(model["name"])
        ]
