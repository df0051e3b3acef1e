"""
Provider adapters.
"""

from .http_base import HttpStreamingAdapter
from .lmstudio_adapter import LMStudioAdapter
from .ollama_adapter import OllamaAdapter
from .envelope_adapter import EnvelopeStreamAdapter
from .bedrock_adapter import BedrockAdapter
from .mantle_adapter import MantleAdapter, MANTLE_REGIONS, list_regions
from .hosted_adapter import HostedAPIAdapter, GroqAdapter, CerebrasAdapter

__all__ = [
    "HttpStreamingAdapter",
    "LMStudioAdapter",
    "OllamaAdapter",
    "EnvelopeStreamAdapter",
    "BedrockAdapter",
    "MantleAdapter",
    "MANTLE_REGIONS",
    "list_regions",
    "HostedAPIAdapter",
    "GroqAdapter",
    "CerebrasAdapter",
]
