"""
Sideband metadata on a text token channel.

Adapters emit one stream of strings. Metadata (usage, reasoning) travels on
the same channel as `<SENTINEL><json>`; the sentinel is distinct per adapter
family. Decoding turns those strings back into typed StreamTokens so callers
of the gateway never see the encoding.

Known edge case: model output that itself starts with the sentinel text is
classified as metadata. The sentinels are chosen to make that unlikely; the
decoder does not try to guard against it.
"""

import json
import logging
from typing import Any, Dict, Optional

from ..core.errors import DecodeError
from ..models.response import ContentToken, ReasoningToken, UsageRecord, UsageToken, StreamToken
from .frames import as_count, as_object, as_text

logger = logging.getLogger(__name__)

LMSTUDIO_SENTINEL = "__LMSTUDIO_METADATA__"
OLLAMA_SENTINEL = "__OLLAMA_METADATA__"
BEDROCK_SENTINEL = "__BEDROCK_METADATA__"
MANTLE_SENTINEL = "__MANTLE_METADATA__"
HOSTED_SENTINEL = "__AISDK_METADATA__"


def usage_to_payload(usage: UsageRecord) -> Dict[str, Any]:
    """Wire shape of a usage record; absent fields are omitted."""
    counts = {
        "inputTokens": usage.input_tokens,
        "outputTokens": usage.output_tokens,
        "totalTokens": usage.total_tokens,
    }
    payload: Dict[str, Any] = {"usage": {k: v for k, v in counts.items() if v is not None}}
    if usage.latency_ms is not None:
        payload["latencyMs"] = usage.latency_ms
    return payload


def _first_present(data: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def usage_from_payload(payload: Dict[str, Any]) -> UsageRecord:
    """
    Build a UsageRecord from a metadata payload.

    Accepts both the inputTokens/outputTokens and the
    promptTokens/completionTokens spellings, and a latency either at
    `latencyMs` or nested under `metrics.latencyMs`.

    Raises:
        DecodeError: If a nested object or a count has the wrong type
    """
    usage = as_object(payload.get("usage"), "usage")
    metrics = as_object(payload.get("metrics"), "metrics")

    latency = payload.get("latencyMs")
    if latency is None:
        latency = metrics.get("latencyMs")

    return UsageRecord(
        input_tokens=as_count(
            _first_present(usage, "inputTokens", "promptTokens"), "inputTokens"
        ),
        output_tokens=as_count(
            _first_present(usage, "outputTokens", "completionTokens"), "outputTokens"
        ),
        total_tokens=as_count(usage.get("totalTokens"), "totalTokens"),
        latency_ms=as_count(latency, "latencyMs"),
    )


class SidebandCodec:
    """Encoder/decoder for one adapter family's sentinel."""

    def __init__(self, sentinel: str):
        self.sentinel = sentinel

    def is_metadata(self, token: str) -> bool:
        return token.startswith(self.sentinel)

    def encode(self, payload: Dict[str, Any]) -> str:
        return f"{self.sentinel}{json.dumps(payload, separators=(',', ':'))}"

    def encode_usage(self, usage: UsageRecord) -> str:
        return self.encode(usage_to_payload(usage))

    def encode_reasoning(self, text: str) -> str:
        return self.encode({"reasoning": text})

    def decode(self, token: str) -> Optional[StreamToken]:
        """
        Classify one string from the adapter channel.

        Returns:
            ContentToken for plain text, ReasoningToken or UsageToken for
            sentinel records, None for a sentinel record carrying nothing
        """
        if not self.is_metadata(token):
            return ContentToken(text=token)

        raw = token[len(self.sentinel):]
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Malformed {self.sentinel} record, passing through as content")
            return ContentToken(text=token)

        if not isinstance(payload, dict):
            return ContentToken(text=token)

        try:
            reasoning = as_text(payload.get("reasoning"), "reasoning")
            usage = None if reasoning else usage_from_payload(payload)
        except DecodeError as e:
            logger.warning(f"Malformed {self.sentinel} record ({e}), passing through as content")
            return ContentToken(text=token)

        if reasoning:
            return ReasoningToken(text=reasoning)
        if usage.is_empty():
            return None
        return UsageToken(usage=usage)
