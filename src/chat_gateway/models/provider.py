"""
Provider identifiers.
"""

from enum import Enum


class ProviderId(str, Enum):
    """Backends the gateway can route to, in declaration order."""
    LMSTUDIO = "lmstudio"
    OLLAMA = "ollama"
    BEDROCK = "bedrock"
    BEDROCK_MANTLE = "bedrock-mantle"
    GROQ = "groq"
    CEREBRAS = "cerebras"
