"""
Provider registry: the static provider -> adapter dispatch table.
"""

import logging
from typing import Dict, Iterable, List, Optional, Type, Union

import httpx

from ..adapters import (
    BedrockAdapter,
    CerebrasAdapter,
    GroqAdapter,
    LMStudioAdapter,
    MantleAdapter,
    OllamaAdapter,
)
from ..models.provider import ProviderId
from .config import GatewayConfig, ProviderSettings
from .errors import UnknownProviderError
from .interface import AbstractProviderAdapter

logger = logging.getLogger(__name__)


ADAPTER_TYPES: Dict[ProviderId, Type[AbstractProviderAdapter]] = {
    ProviderId.LMSTUDIO: LMStudioAdapter,
    ProviderId.OLLAMA: OllamaAdapter,
    ProviderId.BEDROCK: BedrockAdapter,
    ProviderId.BEDROCK_MANTLE: MantleAdapter,
    ProviderId.GROQ: GroqAdapter,
    ProviderId.CEREBRAS: CerebrasAdapter,
}


def build_adapter(
    settings: ProviderSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AbstractProviderAdapter:
    """
    Create an adapter instance from provider settings.

    Args:
        settings: Provider configuration
        transport: Optional httpx transport shared by the adapter's client

    Returns:
        Configured, not yet connected adapter
    """
    adapter_class = ADAPTER_TYPES[settings.id]
    return adapter_class(
        base_url=settings.base_url,
        api_key=settings.api_key,
        region=settings.region,
        timeout=settings.timeout,
        transport=transport,
        **settings.extra,
    )


class ProviderRegistry:
    """
    Routes provider ids to adapters.

    The table is fixed at construction; route() only reads it, so one
    registry can serve any number of concurrent chats.
    """

    def __init__(self, adapters: Iterable[AbstractProviderAdapter]):
        """
        Initialize the registry.

        Args:
            adapters: Adapters in provider declaration order

        Raises:
            ValueError: If two adapters serve the same provider
        """
        self._adapters: Dict[ProviderId, AbstractProviderAdapter] = {}
        for adapter in adapters:
            if adapter.provider_id in self._adapters:
                raise ValueError(f"Duplicate adapter for provider: {adapter.name}")
            self._adapters[adapter.provider_id] = adapter
            logger.info(f"Registered provider adapter: {adapter.name}")

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ProviderRegistry":
        return cls(build_adapter(p, transport) for p in config.enabled_providers)

    @property
    def provider_ids(self) -> List[ProviderId]:
        return list(self._adapters)

    def adapters(self) -> List[AbstractProviderAdapter]:
        """Adapters in provider declaration order."""
        return list(self._adapters.values())

    def route(self, provider_id: Union[ProviderId, str]) -> AbstractProviderAdapter:
        """
        Get the adapter for a provider.

        Args:
            provider_id: Provider enum member or its string value

        Returns:
            The provider's adapter

        Raises:
            UnknownProviderError: If the id is not recognized or not configured
        """
        try:
            key = ProviderId(provider_id)
        except ValueError:
            raise UnknownProviderError(str(provider_id))

        adapter = self._adapters.get(key)
        if adapter is None:
            raise UnknownProviderError(key.value)
        return adapter

    def __contains__(self, provider_id: object) -> bool:
        try:
            return ProviderId(provider_id) in self._adapters
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._adapters)
