"""
Unified stream and catalog models for the chat gateway.
"""

from typing import Annotated, Optional, Union, Literal

from pydantic import BaseModel, ConfigDict, Field

from .provider import ProviderId


class UsageRecord(BaseModel):
    """
    Token usage and latency for one completed turn.

    Every field is optional: not all providers report everything.
    """
    model_config = ConfigDict(frozen=True)

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    latency_ms: Optional[int] = None

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (self.input_tokens, self.output_tokens, self.total_tokens, self.latency_ms)
        )


class ContentToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["content"] = "content"
    text: str


class ReasoningToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["reasoning"] = "reasoning"
    text: str


class UsageToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["usage"] = "usage"
    usage: UsageRecord


class EndToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["end"] = "end"


StreamToken = Annotated[
    Union[ContentToken, ReasoningToken, UsageToken, EndToken],
    Field(discriminator="kind"),
]


class ModelDescriptor(BaseModel):
    """
    A model offered by one provider.

    Two descriptors are equal when provider and model id match; the same
    model id may legitimately appear under several providers.
    """
    model_config = ConfigDict(frozen=True)

    model_id: str
    display_name: str
    provider_id: ProviderId
    family: Optional[str] = None
    context_length: Optional[int] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModelDescriptor):
            return NotImplemented
        return (self.provider_id, self.model_id) == (other.provider_id, other.model_id)

    def __hash__(self) -> int:
        return hash((self.provider_id, self.model_id))


class ChatTurn(BaseModel):
    """An assistant turn assembled from a token stream."""
    content: str = ""
    reasoning: str = ""
    usage: Optional[UsageRecord] = None
    cancelled: bool = False
