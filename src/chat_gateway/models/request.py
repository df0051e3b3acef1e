"""
Unified request models for the chat gateway.
"""

import json
import logging
from typing import Optional, List, Dict, Any, Union, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class Attachment(BaseModel):
    """A file attached to a message, already base64-encoded by the caller."""
    model_config = ConfigDict(frozen=True)

    name: str
    format: str = Field(..., description="Short document format, e.g. 'pdf' or 'png'")
    base64_bytes: str

    def to_wire(self) -> Dict[str, str]:
        """Shape used by the managed cloud bridge (`files` entries)."""
        return {"name": self.name, "format": self.format, "bytes": self.base64_bytes}


class DocumentSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    bytes: str


class DocumentBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    format: str
    source: DocumentSource


class ContentPart(BaseModel):
    """One block of multi-part message content."""
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    document: Optional[DocumentBlock] = None


class ChatMessage(BaseModel):
    """
    Unified message format.

    Content is either plain text or a list of content parts; attachments are
    only honoured by backends that accept files or images.
    """
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: Union[str, List[ContentPart]]
    attachments: Optional[List[Attachment]] = None

    def text(self) -> str:
        """Content flattened to plain text (document parts are skipped)."""
        if isinstance(self.content, str):
            return self.content
        return "\n\n".join(part.text for part in self.content if part.text)

    def content_as_string(self) -> str:
        """Plain text as-is, multi-part content serialized to a JSON string."""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(
            [part.model_dump(exclude_none=True) for part in self.content]
        )

    def content_for_wire(self) -> Union[str, List[Dict[str, Any]]]:
        if isinstance(self.content, str):
            return self.content
        return [part.model_dump(exclude_none=True) for part in self.content]


class ChatRequest(BaseModel):
    """
    Unified chat request.

    One request maps to exactly one outbound call and one response stream.
    The cancellation token is never serialized.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str = Field(..., description="Target model identifier")
    messages: List[ChatMessage] = Field(..., description="Conversation messages")

    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    cancellation_token: Optional[CancellationToken] = Field(default=None, exclude=True)

    def to_openai_messages(self) -> List[Dict[str, str]]:
        """Convert messages to OpenAI chat format with plain-text content."""
        messages = []
        for m in self.messages:
            if m.attachments:
                logger.debug(
                    f"Dropping {len(m.attachments)} attachment(s) for OpenAI-format message"
                )
            messages.append({"role": m.role, "content": m.text()})
        return messages

    def sampling_params(
        self,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        top_p: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Resolve sampling parameters, falling back to the given defaults.

        Keys whose resolved value is None are left out.
        """
        resolved = {
            "temperature": self.temperature if self.temperature is not None else temperature,
            "max_tokens": self.max_tokens if self.max_tokens is not None else max_tokens,
            "top_p": self.top_p if self.top_p is not None else top_p,
        }
        return {k: v for k, v in resolved.items() if v is not None}
