"""
Configuration loading for the chat gateway.

Provider settings (base URLs, API keys, region) are read once at startup and
treated as read-only for the gateway's lifetime; rotation goes through
ChatGateway.reconfigure().
"""

import os
import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ..models.provider import ProviderId

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_LIST_MODELS_TIMEOUT = 15.0

CONFIG_SEARCH_PATHS = [
    Path("config/chat-gateway/providers.yaml"),
    Path("/etc/chat-gateway/providers.yaml"),
    Path.home() / ".config/chat-gateway/providers.yaml",
]


@dataclass
class ProviderSettings:
    """Configuration for a single provider adapter."""
    id: ProviderId
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    region: Optional[str] = None
    timeout: float = 120.0
    enabled: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayConfig:
    """Complete gateway configuration. Provider order is declaration order."""
    providers: List[ProviderSettings] = field(default_factory=list)
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    list_models_timeout: float = DEFAULT_LIST_MODELS_TIMEOUT

    @property
    def enabled_providers(self) -> List[ProviderSettings]:
        return [p for p in self.providers if p.enabled]

    def get(self, provider_id: ProviderId) -> Optional[ProviderSettings]:
        for p in self.providers:
            if p.id == provider_id:
                return p
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayConfig":
        """
        Build configuration from a plain dictionary.

        Args:
            data: Parsed configuration, same shape as the YAML file

        Raises:
            ValueError: If a provider id is not recognized
        """
        return _parse_config(data)


def _expand_env(value: Optional[str]) -> Optional[str]:
    """Expand a `${VAR}` reference to the environment value."""
    if value and isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1], "") or None
    return value


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration from a YAML file.

    Args:
        config_path: Path to config file. If None, uses default locations.

    Returns:
        Loaded configuration, or environment-driven defaults if no file is
        found or it cannot be parsed
    """
    if config_path is None:
        for p in CONFIG_SEARCH_PATHS:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.warning("No gateway config file found, using defaults")
        return default_config()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = _parse_config(data)
        logger.info(f"Loaded {len(config.providers)} provider(s) from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return default_config()


def _parse_config(data: Dict[str, Any]) -> GatewayConfig:
    """Parse configuration dictionary."""
    providers = []

    for p_data in data.get("providers", []):
        providers.append(ProviderSettings(
            id=ProviderId(p_data["id"]),
            base_url=_expand_env(p_data.get("base_url")),
            api_key=_expand_env(p_data.get("api_key")),
            region=_expand_env(p_data.get("region")),
            timeout=float(p_data.get("timeout", 120.0)),
            enabled=bool(p_data.get("enabled", True)),
            extra=p_data.get("extra", {}),
        ))

    return GatewayConfig(
        providers=providers,
        probe_timeout=float(data.get("probe_timeout", DEFAULT_PROBE_TIMEOUT)),
        list_models_timeout=float(data.get("list_models_timeout", DEFAULT_LIST_MODELS_TIMEOUT)),
    )


def default_config() -> GatewayConfig:
    """Return configuration for every provider, driven by environment variables."""
    return GatewayConfig(
        providers=[
            ProviderSettings(
                id=ProviderId.LMSTUDIO,
                base_url=os.environ.get("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
            ),
            ProviderSettings(
                id=ProviderId.OLLAMA,
                base_url=os.environ.get("OLLAMA_HOST", "http://localhost:11434"),
            ),
            ProviderSettings(
                id=ProviderId.BEDROCK,
                base_url=os.environ.get("BEDROCK_BRIDGE_URL", "http://localhost:8787/api/bedrock"),
            ),
            ProviderSettings(
                id=ProviderId.BEDROCK_MANTLE,
                base_url=os.environ.get("MANTLE_BRIDGE_URL", "http://localhost:8787/api/mantle"),
                api_key=os.environ.get("MANTLE_API_KEY") or None,
                region=os.environ.get("MANTLE_REGION", "us-west-2"),
            ),
            ProviderSettings(
                id=ProviderId.GROQ,
                api_key=os.environ.get("GROQ_API_KEY") or None,
                timeout=60.0,
            ),
            ProviderSettings(
                id=ProviderId.CEREBRAS,
                api_key=os.environ.get("CEREBRAS_API_KEY") or None,
                timeout=60.0,
            ),
        ],
        probe_timeout=float(os.environ.get("GATEWAY_PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT)),
    )
