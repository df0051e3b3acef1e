"""
Abstract provider adapter interface.

Defines the contract every backend adapter implements.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, List, Set

from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..models.response import ModelDescriptor, StreamToken
from ..streaming.sideband import SidebandCodec

logger = logging.getLogger(__name__)


class ProviderCapability(str, Enum):
    """Capabilities that an adapter may support."""
    STREAMING = "streaming"
    USAGE_REPORTING = "usage_reporting"
    LATENCY_REPORTING = "latency_reporting"
    REASONING = "reasoning"
    DOCUMENTS = "documents"
    VISION = "vision"
    MODEL_DISCOVERY = "model_discovery"


class AbstractProviderAdapter(ABC):
    """
    Abstract base class for backend adapters.

    An adapter translates one vendor's wire protocol into the gateway's
    token stream. It holds only read-only configuration (URLs, credentials)
    plus a lazily created client, so concurrent chats through the same
    adapter never share mutable per-request state.
    """

    @property
    @abstractmethod
    def provider_id(self) -> ProviderId:
        """Provider this adapter serves."""
        pass

    @property
    @abstractmethod
    def sentinel(self) -> str:
        """Sentinel prefix marking metadata on this adapter's text channel."""
        pass

    @property
    @abstractmethod
    def capabilities(self) -> Set[ProviderCapability]:
        pass

    @property
    def name(self) -> str:
        return self.provider_id.value

    @property
    def codec(self) -> SidebandCodec:
        return SidebandCodec(self.sentinel)

    async def connect(self) -> None:
        """Prepare the underlying client. Called lazily on first use."""
        pass

    async def disconnect(self) -> None:
        """Release the underlying client."""
        pass

    async def reconfigure(self, **settings) -> None:
        """
        Replace connection settings such as base_url, api_key or region.

        The current client, if any, is dropped and rebuilt on next use.

        Raises:
            ValueError: If a setting is not understood by this adapter
        """
        raise ValueError(f"{self.name} does not accept settings: {sorted(settings)}")

    @abstractmethod
    def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        """
        Stream the response as strings on the sideband channel.

        Content arrives as plain strings; usage and reasoning arrive as
        sentinel-prefixed records (see SidebandCodec).

        Raises:
            ProviderUnavailableError: Before any item, if the stream cannot start
            StreamInterruptedError: If the transport fails mid-stream
            ChatCancelledError: If the request's cancellation token fires
        """
        pass

    async def chat(self, request: ChatRequest) -> AsyncIterator[StreamToken]:
        """
        Stream the response as typed tokens.

        Yields:
            ContentToken, ReasoningToken and UsageToken values
        """
        codec = self.codec
        async for item in self.stream_text(request):
            token = codec.decode(item)
            if token is not None:
                yield token

    @abstractmethod
    async def list_models(self) -> List[ModelDescriptor]:
        """
        List models this provider currently offers.

        Raises:
            ProviderUnavailableError: On transport failure or error status
        """
        pass

    @abstractmethod
    async def probe(self) -> bool:
        """Lightweight reachability check. Never raises."""
        pass

    def supports(self, capability: ProviderCapability) -> bool:
        return capability in self.capabilities

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider={self.name!r})"
