"""
Amazon Bedrock adapter.

Reaches Bedrock through the bridge service (see chat_gateway.bridge), which
owns the AWS credentials and converts ConverseStream events into the SSE
envelope. Document attachments travel base64-encoded in each message's
`files` list.
"""

import logging
from typing import Any, Dict, Set

from ..core.interface import ProviderCapability
from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..streaming.sideband import BEDROCK_SENTINEL
from .envelope_adapter import EnvelopeStreamAdapter
from .lmstudio_adapter import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, DEFAULT_TOP_P

logger = logging.getLogger(__name__)


class BedrockAdapter(EnvelopeStreamAdapter):
    """
    AWS Bedrock adapter (via bridge).

    Reports input/output/total tokens and the service-measured latency.
    """

    DEFAULT_BASE_URL = "http://localhost:8787/api/bedrock"
    REPORTS_LATENCY = True

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.BEDROCK

    @property
    def sentinel(self) -> str:
        return BEDROCK_SENTINEL

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.STREAMING,
            ProviderCapability.USAGE_REPORTING,
            ProviderCapability.LATENCY_REPORTING,
            ProviderCapability.DOCUMENTS,
            ProviderCapability.MODEL_DISCOVERY,
        }

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        messages = []
        for msg in request.messages:
            message: Dict[str, Any] = {"role": msg.role, "content": msg.content_for_wire()}
            if msg.attachments:
                message["files"] = [a.to_wire() for a in msg.attachments]
                logger.debug(f"Bedrock: attaching {len(msg.attachments)} file(s)")
            messages.append(message)

        payload: Dict[str, Any] = {"model": request.model, "messages": messages}
        payload.update(request.sampling_params(
            temperature=DEFAULT_TEMPERATURE,
            max_tokens=DEFAULT_MAX_TOKENS,
            top_p=DEFAULT_TOP_P,
        ))
        return payload
