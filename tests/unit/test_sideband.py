"""
Unit tests for the sideband metadata codec.
"""
import pytest

from chat_gateway.models import ContentToken, ReasoningToken, UsageRecord, UsageToken
from chat_gateway.streaming.sideband import (
    BEDROCK_SENTINEL,
    HOSTED_SENTINEL,
    LMSTUDIO_SENTINEL,
    MANTLE_SENTINEL,
    OLLAMA_SENTINEL,
    SidebandCodec,
)


class TestSidebandCodec:
    """Test encoding metadata onto the text channel and back."""

    @pytest.mark.parametrize(
        "usage",
        [
            UsageRecord(input_tokens=3, output_tokens=1, total_tokens=4),
            UsageRecord(input_tokens=120, output_tokens=48, total_tokens=168, latency_ms=930),
            UsageRecord(output_tokens=7),
            UsageRecord(latency_ms=12),
        ],
    )
    def test_usage_round_trip(self, usage):
        """Test encode then decode reproduces the usage record exactly."""
        codec = SidebandCodec(LMSTUDIO_SENTINEL)
        token = codec.decode(codec.encode_usage(usage))
        assert token == UsageToken(usage=usage)

    def test_reasoning_round_trip(self):
        """Test reasoning text survives the sideband."""
        codec = SidebandCodec(MANTLE_SENTINEL)
        assert codec.decode(codec.encode_reasoning("think\nfirst")) == ReasoningToken(text="think\nfirst")

    def test_plain_text_is_content(self):
        """Test strings without the sentinel are content."""
        codec = SidebandCodec(OLLAMA_SENTINEL)
        assert codec.decode("Hello") == ContentToken(text="Hello")

    def test_encoded_form(self):
        """Test the wire form is the sentinel followed by compact JSON."""
        codec = SidebandCodec(BEDROCK_SENTINEL)
        encoded = codec.encode_usage(UsageRecord(input_tokens=1, output_tokens=2, total_tokens=3, latency_ms=4))
        assert encoded == (
            '__BEDROCK_METADATA__{"usage":{"inputTokens":1,"outputTokens":2,"totalTokens":3},"latencyMs":4}'
        )

    def test_accepts_prompt_completion_spelling(self):
        """Test the promptTokens/completionTokens spelling decodes."""
        codec = SidebandCodec(HOSTED_SENTINEL)
        token = codec.decode(
            HOSTED_SENTINEL + '{"usage":{"promptTokens":5,"completionTokens":6,"totalTokens":11},"latencyMs":80}'
        )
        assert token.usage == UsageRecord(input_tokens=5, output_tokens=6, total_tokens=11, latency_ms=80)

    def test_accepts_nested_metrics_latency(self):
        """Test latency nested under metrics decodes."""
        codec = SidebandCodec(BEDROCK_SENTINEL)
        token = codec.decode(BEDROCK_SENTINEL + '{"usage":{"inputTokens":1},"metrics":{"latencyMs":250}}')
        assert token.usage.latency_ms == 250

    def test_malformed_record_is_content(self):
        """Test a sentinel with broken JSON is passed through as content."""
        codec = SidebandCodec(LMSTUDIO_SENTINEL)
        raw = LMSTUDIO_SENTINEL + "{oops"
        assert codec.decode(raw) == ContentToken(text=raw)

    @pytest.mark.parametrize("record", [
        '{"usage":{"inputTokens":"ten"}}',
        '{"usage":"none"}',
        '{"reasoning":["a"]}',
    ])
    def test_wrong_shape_record_is_content(self, record):
        """Test a sentinel record with unexpected field types is passed through as content."""
        codec = SidebandCodec(MANTLE_SENTINEL)
        raw = MANTLE_SENTINEL + record
        assert codec.decode(raw) == ContentToken(text=raw)

    def test_empty_record_is_dropped(self):
        """Test a sentinel record carrying nothing decodes to None."""
        codec = SidebandCodec(LMSTUDIO_SENTINEL)
        assert codec.decode(LMSTUDIO_SENTINEL + "{}") is None

    def test_content_starting_with_sentinel_is_misclassified(self):
        """Test the known edge case: content that begins with the sentinel reads as metadata."""
        codec = SidebandCodec(OLLAMA_SENTINEL)
        assert codec.is_metadata(OLLAMA_SENTINEL + '{"usage":{"inputTokens":1}}')

    def test_sentinels_are_distinct(self):
        """Test every adapter family has its own sentinel."""
        sentinels = {LMSTUDIO_SENTINEL, OLLAMA_SENTINEL, BEDROCK_SENTINEL, MANTLE_SENTINEL, HOSTED_SENTINEL}
        assert len(sentinels) == 5
