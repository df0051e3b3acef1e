"""
Core gateway components: errors, cancellation and configuration.

The adapter interface and the registry live in `core.interface` and
`core.registry`; they are re-exported from the top-level package.
"""

from .errors import (
    GatewayError,
    ProviderUnavailableError,
    ProviderUnreachableError,
    ProviderRejectedError,
    StreamInterruptedError,
    ChatCancelledError,
    DecodeError,
    NoProvidersAvailableError,
    UnknownProviderError,
    AttachmentError,
)
from .cancellation import CancellationToken
from .config import GatewayConfig, ProviderSettings, load_config, default_config

__all__ = [
    "GatewayError",
    "ProviderUnavailableError",
    "ProviderUnreachableError",
    "ProviderRejectedError",
    "StreamInterruptedError",
    "ChatCancelledError",
    "DecodeError",
    "NoProvidersAvailableError",
    "UnknownProviderError",
    "AttachmentError",
    "CancellationToken",
    "GatewayConfig",
    "ProviderSettings",
    "load_config",
    "default_config",
]
