"""
Unit tests for the ChatGateway facade and turn collection.
"""
import httpx
import pytest

from chat_gateway import ChatGateway, collect_turn
from chat_gateway.adapters import LMStudioAdapter
from chat_gateway.core.cancellation import CancellationToken
from chat_gateway.core.config import GatewayConfig, ProviderSettings
from chat_gateway.core.errors import (
    ChatCancelledError,
    NoProvidersAvailableError,
    StreamInterruptedError,
    UnknownProviderError,
)
from chat_gateway.core.registry import ProviderRegistry
from chat_gateway.models import (
    ContentToken,
    EndToken,
    ProviderId,
    ReasoningToken,
    UsageRecord,
    UsageToken,
)
from chat_gateway.streaming.sideband import SidebandCodec

from helpers import PausingSSEServer, ScriptedAdapter, sse_body, stream_chunks, user_request

SENTINEL = "__TEST_METADATA__"
codec = SidebandCodec(SENTINEL)


def gateway_with(*adapters) -> ChatGateway:
    return ChatGateway(ProviderRegistry(adapters), probe_timeout=0.1, list_models_timeout=0.1)


async def collect(stream):
    return [token async for token in stream]


class TestGatewayChat:
    """Test the typed token stream exposed to callers."""

    @pytest.mark.asyncio
    async def test_lmstudio_scenario(self):
        """Test content, usage, end-of-stream and nothing after."""
        body = sse_body(
            {"choices": [{"delta": {"content": "Hi"}}]},
            {"usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4}},
        )
        config = GatewayConfig(providers=[ProviderSettings(id=ProviderId.LMSTUDIO)])
        gateway = ChatGateway.from_config(
            config, transport=httpx.MockTransport(lambda request: httpx.Response(200, content=body)),
        )

        tokens = await collect(gateway.chat("lmstudio", user_request()))

        assert tokens == [
            ContentToken(text="Hi"),
            UsageToken(usage=UsageRecord(input_tokens=3, output_tokens=1, total_tokens=4)),
            EndToken(),
        ]

    @pytest.mark.asyncio
    async def test_empty_ollama_stream(self):
        """Test an empty NDJSON body yields only end-of-stream."""
        config = GatewayConfig(providers=[ProviderSettings(id=ProviderId.OLLAMA)])
        gateway = ChatGateway.from_config(
            config, transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"")),
        )
        assert await collect(gateway.chat(ProviderId.OLLAMA, user_request())) == [EndToken()]

    @pytest.mark.asyncio
    async def test_usage_is_held_until_end(self):
        """Test an early usage record is moved to just before End, last one wins."""
        adapter = ScriptedAdapter(ProviderId.GROQ, items=[
            codec.encode_usage(UsageRecord(input_tokens=1)),
            "a",
            codec.encode_usage(UsageRecord(input_tokens=2, output_tokens=1, total_tokens=3)),
            "b",
        ])

        tokens = await collect(gateway_with(adapter).chat("groq", user_request()))

        assert tokens == [
            ContentToken(text="a"),
            ContentToken(text="b"),
            UsageToken(usage=UsageRecord(input_tokens=2, output_tokens=1, total_tokens=3)),
            EndToken(),
        ]

    @pytest.mark.asyncio
    async def test_late_reasoning_is_dropped(self):
        """Test reasoning after content has started never reaches the caller."""
        adapter = ScriptedAdapter(ProviderId.BEDROCK_MANTLE, items=[
            codec.encode_reasoning("plan"),
            "answer",
            codec.encode_reasoning("afterthought"),
        ])

        tokens = await collect(gateway_with(adapter).chat("bedrock-mantle", user_request()))

        assert tokens == [ReasoningToken(text="plan"), ContentToken(text="answer"), EndToken()]

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        """Test routing to an unconfigured provider fails."""
        gateway = gateway_with(ScriptedAdapter(ProviderId.OLLAMA))
        with pytest.raises(UnknownProviderError):
            await collect(gateway.chat("groq", user_request()))

    @pytest.mark.asyncio
    async def test_interrupted_stream_propagates(self):
        """Test StreamInterruptedError reaches the caller after the delivered tokens."""
        adapter = ScriptedAdapter(
            ProviderId.OLLAMA,
            items=["a"],
            stream_error=StreamInterruptedError("reset", "ollama"),
        )
        tokens = []
        with pytest.raises(StreamInterruptedError):
            async for token in gateway_with(adapter).chat("ollama", user_request()):
                tokens.append(token)
        assert tokens == [ContentToken(text="a")]


class TestGatewayCancellation:
    """Test cancellation prefix preservation and termination."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cancel_after", [1, 2, 3])
    async def test_prefix_preserved(self, cancel_after):
        """Test tokens before the cancel match the uncancelled run and nothing follows."""
        words = ["one ", "two ", "three ", "four ", "five"]
        chunks = [sse_body({"choices": [{"delta": {"content": w}}]}, done=False) for w in words]
        chunks.append(b"data: [DONE]\n\n")

        def handler(request):
            return httpx.Response(200, content=stream_chunks(chunks))

        config = GatewayConfig(providers=[ProviderSettings(id=ProviderId.LMSTUDIO)])
        gateway = ChatGateway.from_config(config, transport=httpx.MockTransport(handler))

        full = await collect(gateway.chat("lmstudio", user_request()))

        token = CancellationToken()
        partial = []
        with pytest.raises(ChatCancelledError):
            async for item in gateway.chat("lmstudio", user_request(cancellation_token=token)):
                partial.append(item)
                if len(partial) == cancel_after:
                    token.cancel()

        assert partial == full[:cancel_after]

    @pytest.mark.asyncio
    async def test_collect_turn_keeps_partial_content(self):
        """Test a cancelled turn keeps content and drops usage."""
        token = CancellationToken()
        adapter = ScriptedAdapter(ProviderId.OLLAMA, items=[
            "Hello",
            codec.encode_usage(UsageRecord(input_tokens=5)),
            " world",
            " never",
        ])
        gateway = gateway_with(adapter)

        async def cancelling_stream():
            async for item in gateway.chat("ollama", user_request(cancellation_token=token)):
                yield item
                if isinstance(item, ContentToken) and item.text == " world":
                    token.cancel()

        turn = await collect_turn(cancelling_stream())

        assert turn.cancelled is True
        assert turn.content == "Hello world"
        assert turn.usage is None

    @pytest.mark.asyncio
    async def test_collect_turn_complete(self):
        """Test a finished turn carries reasoning, content and usage."""
        adapter = ScriptedAdapter(ProviderId.BEDROCK_MANTLE, items=[
            codec.encode_reasoning("hmm"),
            "4",
            codec.encode_usage(UsageRecord(input_tokens=3, output_tokens=1, total_tokens=4)),
        ])

        turn = await collect_turn(gateway_with(adapter).chat("bedrock-mantle", user_request()))

        assert turn.cancelled is False
        assert turn.reasoning == "hmm"
        assert turn.content == "4"
        assert turn.usage.total_tokens == 4


class TestGatewayFanOut:
    """Test model listing, probing and reconfiguration through the facade."""

    @pytest.mark.asyncio
    async def test_list_all_models(self):
        """Test aggregation through the gateway."""
        gateway = gateway_with(
            ScriptedAdapter(ProviderId.LMSTUDIO, models=["a"]),
            ScriptedAdapter(ProviderId.OLLAMA, models_error=RuntimeError("down")),
        )
        models = await gateway.list_all_models()
        assert [m.model_id for m in models] == ["a"]

    @pytest.mark.asyncio
    async def test_no_providers(self):
        """Test NoProvidersAvailableError surfaces from the gateway."""
        gateway = gateway_with(ScriptedAdapter(ProviderId.OLLAMA, models_error=RuntimeError("down")))
        with pytest.raises(NoProvidersAvailableError):
            await gateway.list_all_models()

    @pytest.mark.asyncio
    async def test_probe_all_and_check_connection(self):
        """Test connectivity through the gateway."""
        gateway = gateway_with(
            ScriptedAdapter(ProviderId.LMSTUDIO, probe_result=True),
            ScriptedAdapter(ProviderId.OLLAMA, probe_result=ConnectionError("x")),
        )
        assert await gateway.probe_all() == {ProviderId.LMSTUDIO: True, ProviderId.OLLAMA: False}
        assert await gateway.check_connection("lmstudio") is True
        assert await gateway.check_connection("groq") is False

    @pytest.mark.asyncio
    async def test_reconfigure_and_close(self):
        """Test settings are forwarded and adapters are disconnected on exit."""
        adapter = ScriptedAdapter(ProviderId.GROQ)

        async with gateway_with(adapter) as gateway:
            await gateway.reconfigure("groq", api_key="new-key")

        assert adapter.settings == {"api_key": "new-key"}
        assert adapter.disconnected

    @pytest.mark.asyncio
    async def test_reconfigure_unknown_provider(self):
        """Test reconfiguring an unconfigured provider fails."""
        with pytest.raises(UnknownProviderError):
            await gateway_with(ScriptedAdapter(ProviderId.OLLAMA)).reconfigure("groq", api_key="k")


class TestGatewayReconfigureWhileStreaming:
    """Test credential rotation against a live socket with a chat in flight."""

    @pytest.fixture(autouse=True)
    def no_proxy(self, monkeypatch):
        for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
            monkeypatch.delenv(name, raising=False)

    @pytest.mark.asyncio
    async def test_open_chat_survives_key_rotation(self):
        """Test a chat started before reconfigure() streams to completion."""
        first = sse_body({"choices": [{"delta": {"content": "one"}}]}, done=False)
        rest = sse_body({"choices": [{"delta": {"content": "two"}}]})

        async with PausingSSEServer(first, rest) as server:
            adapter = LMStudioAdapter(base_url=f"{server.url}/v1", timeout=10.0)
            gateway = gateway_with(adapter)

            stream = gateway.chat("lmstudio", user_request())
            head = await stream.__anext__()

            await gateway.reconfigure("lmstudio", api_key="rotated")
            assert not adapter.is_connected
            server.release.set()

            tail = await collect(stream)
            await gateway.aclose()

        assert head == ContentToken(text="one")
        assert tail == [ContentToken(text="two"), EndToken()]
