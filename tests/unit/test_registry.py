"""
Unit tests for the provider registry and adapter construction.
"""
import pytest

from chat_gateway.adapters import (
    BedrockAdapter,
    CerebrasAdapter,
    GroqAdapter,
    LMStudioAdapter,
    MantleAdapter,
    OllamaAdapter,
)
from chat_gateway.core.config import GatewayConfig, ProviderSettings, default_config
from chat_gateway.core.errors import UnknownProviderError
from chat_gateway.core.registry import ADAPTER_TYPES, ProviderRegistry, build_adapter
from chat_gateway.models import ProviderId

from helpers import ScriptedAdapter


class TestProviderRegistry:
    """Test routing provider ids to adapters."""

    def test_route_by_enum_and_string(self):
        """Test both the enum and its string value route."""
        ollama = ScriptedAdapter(ProviderId.OLLAMA)
        registry = ProviderRegistry([ScriptedAdapter(ProviderId.LMSTUDIO), ollama])

        assert registry.route(ProviderId.OLLAMA) is ollama
        assert registry.route("ollama") is ollama

    def test_unknown_provider(self):
        """Test an unrecognized id raises UnknownProviderError."""
        registry = ProviderRegistry([ScriptedAdapter(ProviderId.OLLAMA)])
        with pytest.raises(UnknownProviderError):
            registry.route("openrouter")

    def test_unconfigured_provider(self):
        """Test a valid but unconfigured id raises UnknownProviderError."""
        registry = ProviderRegistry([ScriptedAdapter(ProviderId.OLLAMA)])
        with pytest.raises(UnknownProviderError) as exc_info:
            registry.route(ProviderId.GROQ)
        assert exc_info.value.provider == "groq"

    def test_duplicate_provider(self):
        """Test two adapters for one provider are refused."""
        with pytest.raises(ValueError):
            ProviderRegistry([ScriptedAdapter(ProviderId.OLLAMA), ScriptedAdapter(ProviderId.OLLAMA)])

    def test_declaration_order(self):
        """Test adapters keep declaration order."""
        registry = ProviderRegistry([
            ScriptedAdapter(ProviderId.GROQ),
            ScriptedAdapter(ProviderId.LMSTUDIO),
        ])
        assert registry.provider_ids == [ProviderId.GROQ, ProviderId.LMSTUDIO]
        assert "groq" in registry
        assert "nope" not in registry
        assert len(registry) == 2


class TestBuildAdapter:
    """Test building adapters from settings."""

    def test_dispatch_table_covers_every_provider(self):
        """Test every provider id has an adapter type."""
        assert set(ADAPTER_TYPES) == set(ProviderId)

    def test_from_default_config(self):
        """Test the default configuration builds one adapter per provider."""
        registry = ProviderRegistry.from_config(default_config())
        types = [type(a) for a in registry.adapters()]
        assert types == [
            LMStudioAdapter,
            OllamaAdapter,
            BedrockAdapter,
            MantleAdapter,
            GroqAdapter,
            CerebrasAdapter,
        ]

    def test_settings_are_applied(self):
        """Test base URL, key, region and extra settings reach the adapter."""
        mantle = build_adapter(ProviderSettings(
            id=ProviderId.BEDROCK_MANTLE,
            base_url="http://bridge:8787/api/mantle",
            api_key="k",
            region="eu-west-2",
        ))
        assert mantle.base_url == "http://bridge:8787/api/mantle"
        assert mantle.region == "eu-west-2"
        assert mantle.has_api_key

        ollama = build_adapter(ProviderSettings(
            id=ProviderId.OLLAMA,
            extra={"keep_alive": "10m"},
        ))
        assert ollama.base_url == "http://localhost:11434"

    def test_disabled_providers_are_skipped(self):
        """Test disabled providers get no adapter."""
        config = GatewayConfig(providers=[
            ProviderSettings(id=ProviderId.LMSTUDIO),
            ProviderSettings(id=ProviderId.OLLAMA, enabled=False),
        ])
        assert ProviderRegistry.from_config(config).provider_ids == [ProviderId.LMSTUDIO]
