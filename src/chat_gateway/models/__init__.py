"""
Chat gateway data models.
"""

from .provider import ProviderId
from .request import ChatRequest, ChatMessage, Attachment, ContentPart, DocumentBlock, DocumentSource
from .response import (
    UsageRecord,
    ContentToken,
    ReasoningToken,
    UsageToken,
    EndToken,
    StreamToken,
    ModelDescriptor,
    ChatTurn,
)

__all__ = [
    "ProviderId",
    "ChatRequest",
    "ChatMessage",
    "Attachment",
    "ContentPart",
    "DocumentBlock",
    "DocumentSource",
    "UsageRecord",
    "ContentToken",
    "ReasoningToken",
    "UsageToken",
    "EndToken",
    "StreamToken",
    "ModelDescriptor",
    "ChatTurn",
]
