"""
Base adapter for the managed cloud bridge.

The bridge speaks SSE where every `data:` record is a small envelope:
`{"content": "..."}`, `{"reasoning": "..."}` or `{"metadata": {...}}`,
terminated by `data: [DONE]`.
"""

import logging
from abc import abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from ..core.errors import DecodeError, StreamInterruptedError
from ..models.request import ChatRequest
from ..models.response import ModelDescriptor, UsageRecord
from ..streaming.frames import SSEFrameDecoder, as_object, as_text
from ..streaming.sideband import usage_from_payload
from .http_base import HttpStreamingAdapter

logger = logging.getLogger(__name__)


class EnvelopeStreamAdapter(HttpStreamingAdapter):
    """Adapter for backends fronted by the chat_gateway bridge."""

    CHAT_PATH = "/chat"
    MODELS_PATH = "/models"
    PROBE_PATH = "/models"

    # Whether `metadata.metrics.latencyMs` is meaningful for this backend
    REPORTS_LATENCY = False

    def _request_headers(self) -> Optional[Dict[str, str]]:
        return None

    @abstractmethod
    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        """Request body for the bridge chat route."""

    def _usage_from_metadata(self, metadata: Dict[str, Any]) -> Optional[UsageRecord]:
        usage = usage_from_payload(metadata)
        if not self.REPORTS_LATENCY:
            usage = usage.model_copy(update={"latency_ms": None})
        return None if usage.is_empty() else usage

    async def _before_request(self) -> None:
        """Hook for precondition checks; raise to refuse the request."""
        pass

    async def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        await self._before_request()

        codec = self.codec
        decoder = SSEFrameDecoder(provider=self.name)

        async for frame in self._stream_frames(
            self.CHAT_PATH,
            self._build_payload(request),
            decoder,
            request.cancellation_token,
            headers=self._request_headers(),
        ):
            try:
                reasoning = as_text(frame.get("reasoning"), "reasoning")
                content = as_text(frame.get("content"), "content")
                usage = self._usage_from_metadata(as_object(frame.get("metadata"), "metadata"))
            except DecodeError as e:
                decoder.reject(frame, e)
                continue

            if reasoning:
                yield codec.encode_reasoning(reasoning)
            if content:
                yield content
            if usage is not None:
                yield codec.encode_usage(usage)

        # The bridge always terminates a complete response
        if not decoder.done:
            logger.error(f"{self.name} stream ended without [DONE]")
            raise StreamInterruptedError("Stream ended before completion", provider=self.name)

    def _descriptor(self, entry: Dict[str, Any]) -> ModelDescriptor:
        return ModelDescriptor(
            model_id=entry["modelId"],
            display_name=entry.get("modelName") or entry["modelId"],
            provider_id=self.provider_id,
            family=entry.get("modelFamily"),
            context_length=entry.get("contextLength"),
        )

    async def list_models(self) -> List[ModelDescriptor]:
        await self._before_request()

        data = await self._get_json(self.MODELS_PATH, headers=self._request_headers())
        entries = data.get("models") or [] if isinstance(data, dict) else []
        logger.info(f"{self.name}: received {len(entries)} models")

        return [
            self._descriptor(entry)
            for entry in entries
            if isinstance(entry, dict) and entry.get("modelId")
        ]
