"""
Chat gateway facade.

ChatGateway is what callers use: it routes a chat to one provider and hands
back typed StreamTokens, and it fans model listing and connectivity checks
out across every configured provider.
"""

import logging
from typing import AsyncIterator, List, Optional, Union

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .catalog import ModelCatalog
from .core.config import GatewayConfig, load_config
from .core.errors import ChatCancelledError, GatewayError
from .core.registry import ProviderRegistry
from .models.provider import ProviderId
from .models.request import ChatRequest
from .models.response import (
    ChatTurn,
    ContentToken,
    EndToken,
    ModelDescriptor,
    ReasoningToken,
    StreamToken,
    UsageToken,
)
from .prober import ConnectivityMap, ConnectivityProber

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ChatGateway:
    """
    Multi-provider streaming chat gateway.

    Example:
        async with ChatGateway.from_config(load_config()) as gateway:
            async for token in gateway.chat("ollama", request):
                ...
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        probe_timeout: Optional[float] = None,
        list_models_timeout: Optional[float] = None,
    ):
        self._registry = registry
        defaults = GatewayConfig()
        self._catalog = ModelCatalog(
            registry.adapters(),
            timeout=list_models_timeout or defaults.list_models_timeout,
        )
        self._prober = ConnectivityProber(
            registry.adapters(),
            timeout=probe_timeout or defaults.probe_timeout,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[GatewayConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ChatGateway":
        """
        Build a gateway with one adapter per enabled provider.

        Args:
            config: Gateway configuration (loaded with load_config() if None)
            transport: Optional httpx transport for every adapter, mainly for tests
        """
        config = config or load_config()
        return cls(
            ProviderRegistry.from_config(config, transport),
            probe_timeout=config.probe_timeout,
            list_models_timeout=config.list_models_timeout,
        )

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def provider_ids(self) -> List[ProviderId]:
        return self._registry.provider_ids

    async def chat(
        self,
        provider_id: Union[ProviderId, str],
        request: ChatRequest,
    ) -> AsyncIterator[StreamToken]:
        """
        Stream one chat turn from a provider.

        Reasoning tokens come before any content; reasoning that arrives
        after content has started is dropped. The last usage record the
        provider reported is held back and emitted just before EndToken.

        Args:
            provider_id: Provider to route to
            request: Chat request (used for exactly this one call)

        Yields:
            ReasoningToken*, ContentToken*, UsageToken?, EndToken

        Raises:
            UnknownProviderError: If the provider is not configured
            ProviderUnavailableError: If the stream could not be established
            StreamInterruptedError: If the stream broke off
            ChatCancelledError: If the request's cancellation token fired
        """
        adapter = self._registry.route(provider_id)
        cancellation_token = request.cancellation_token

        span = tracer.start_span("chat")
        span.set_attribute("provider", adapter.name)
        span.set_attribute("model", request.model)

        usage: Optional[UsageToken] = None
        content_started = False
        content_tokens = 0

        try:
            async for token in adapter.chat(request):
                if cancellation_token is not None:
                    cancellation_token.raise_if_cancelled(adapter.name)

                if isinstance(token, UsageToken):
                    usage = token
                    continue

                if isinstance(token, ReasoningToken) and content_started:
                    logger.debug(f"{adapter.name}: dropping reasoning received after content")
                    continue

                if isinstance(token, ContentToken):
                    content_started = True
                    content_tokens += 1

                yield token

            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled(adapter.name)

            if usage is not None:
                if usage.usage.input_tokens is not None:
                    span.set_attribute("input_tokens", usage.usage.input_tokens)
                if usage.usage.output_tokens is not None:
                    span.set_attribute("output_tokens", usage.usage.output_tokens)
                yield usage

            yield EndToken()

        except ChatCancelledError:
            logger.info(f"{adapter.name}: chat cancelled after {content_tokens} content tokens")
            span.set_attribute("cancelled", True)
            raise
        except GatewayError as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
        finally:
            span.set_attribute("content_tokens", content_tokens)
            span.end()

    async def list_all_models(self) -> List[ModelDescriptor]:
        """
        List models from every provider.

        Raises:
            NoProvidersAvailableError: If no provider returned any model
        """
        return await self._catalog.list_all_models()

    async def probe_all(self) -> ConnectivityMap:
        """Reachability of every provider. Never raises."""
        return await self._prober.probe_all()

    async def check_connection(self, provider_id: Union[ProviderId, str]) -> bool:
        """Reachability of one provider. Never raises."""
        return await self._prober.check_connection(provider_id)

    async def reconfigure(self, provider_id: Union[ProviderId, str], **settings) -> None:
        """
        Replace a provider's connection settings, e.g. to rotate an API key.

        Chats already streaming keep their current client.

        Raises:
            UnknownProviderError: If the provider is not configured
            ValueError: If the adapter does not accept a setting
        """
        adapter = self._registry.route(provider_id)
        await adapter.reconfigure(**settings)
        logger.info(f"Reconfigured provider {adapter.name}: {sorted(settings)}")

    async def aclose(self) -> None:
        """Disconnect every adapter."""
        for adapter in self._registry.adapters():
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.error(f"Failed to disconnect {adapter.name}: {e}")

    async def __aenter__(self) -> "ChatGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


async def collect_turn(stream: AsyncIterator[StreamToken]) -> ChatTurn:
    """
    Drain a token stream into a finished assistant turn.

    On cancellation the content received so far is kept, usage is dropped
    and the turn is marked cancelled. Every other error propagates.
    """
    content: List[str] = []
    reasoning: List[str] = []
    usage = None

    try:
        async for token in stream:
            if isinstance(token, ContentToken):
                content.append(token.text)
            elif isinstance(token, ReasoningToken):
                reasoning.append(token.text)
            elif isinstance(token, UsageToken):
                usage = token.usage
    except ChatCancelledError:
        return ChatTurn(
            content="".join(content),
            reasoning="".join(reasoning),
            usage=None,
            cancelled=True,
        )

    return ChatTurn(content="".join(content), reasoning="".join(reasoning), usage=usage)
