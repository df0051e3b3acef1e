"""
Multi-provider streaming chat gateway.

Talks to local servers (LM Studio, Ollama), Amazon Bedrock and Bedrock
Mantle through the bridge service, and hosted APIs (Groq, Cerebras) through
one async contract.
"""

from .core.errors import (
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
from .core.cancellation import CancellationToken
from .core.config import GatewayConfig, ProviderSettings, load_config, default_config
from .core.interface import AbstractProviderAdapter, ProviderCapability
from .core.registry import ProviderRegistry, build_adapter, ADAPTER_TYPES
from .models import (
    ProviderId,
    ChatRequest,
    ChatMessage,
    Attachment,
    ContentPart,
    UsageRecord,
    ContentToken,
    ReasoningToken,
    UsageToken,
    EndToken,
    StreamToken,
    ModelDescriptor,
    ChatTurn,
)
from .catalog import ModelCatalog
from .prober import ConnectivityProber, ConnectivityMap
from .gateway import ChatGateway, collect_turn

__version__ = "0.1.0"

__all__ = [
    "ChatGateway",
    "collect_turn",
    "ModelCatalog",
    "ConnectivityProber",
    "ConnectivityMap",
    "ProviderRegistry",
    "build_adapter",
    "ADAPTER_TYPES",
    "AbstractProviderAdapter",
    "ProviderCapability",
    "CancellationToken",
    "GatewayConfig",
    "ProviderSettings",
    "load_config",
    "default_config",
    "ProviderId",
    "ChatRequest",
    "ChatMessage",
    "Attachment",
    "ContentPart",
    "UsageRecord",
    "ContentToken",
    "ReasoningToken",
    "UsageToken",
    "EndToken",
    "StreamToken",
    "ModelDescriptor",
    "ChatTurn",
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
]
