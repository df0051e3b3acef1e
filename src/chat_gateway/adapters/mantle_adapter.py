"""
Amazon Bedrock Mantle adapter.

Mantle exposes OpenAI-compatible regional endpoints gated by an API key.
Requests go through the bridge, which forwards the key and region and
re-frames the upstream stream into the SSE envelope, including reasoning
deltas from models that emit them.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from ..core.errors import ProviderUnavailableError
from ..core.interface import ProviderCapability
from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..streaming.sideband import MANTLE_SENTINEL
from .envelope_adapter import EnvelopeStreamAdapter

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-west-2"

MANTLE_REGIONS: Dict[str, str] = {
    "us-east-1": "US East (N. Virginia)",
    "us-east-2": "US East (Ohio)",
    "us-west-2": "US West (Oregon)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
    "ap-south-1": "Asia Pacific (Mumbai)",
    "ap-southeast-3": "Asia Pacific (Jakarta)",
    "eu-central-1": "Europe (Frankfurt)",
    "eu-west-1": "Europe (Ireland)",
    "eu-west-2": "Europe (London)",
    "eu-south-1": "Europe (Milan)",
    "eu-north-1": "Europe (Stockholm)",
    "sa-east-1": "South America (São Paulo)",
}


def mantle_endpoint(region: str) -> str:
    return f"https://bedrock-mantle.{region}.api.aws/v1"


def list_regions() -> List[Dict[str, str]]:
    return [
        {"id": region, "name": name, "endpoint": mantle_endpoint(region)}
        for region, name in MANTLE_REGIONS.items()
    ]


def validate_region(region: str) -> str:
    if region not in MANTLE_REGIONS:
        raise ValueError(
            f"Invalid region: {region}. Supported regions: {', '.join(MANTLE_REGIONS)}"
        )
    return region


class MantleAdapter(EnvelopeStreamAdapter):
    """
    Bedrock Mantle adapter (via bridge).

    Without an API key, chat and model listing fail with
    ProviderUnavailableError and probe() reports False without any
    network call.
    """

    DEFAULT_BASE_URL = "http://localhost:8787/api/mantle"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        region: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(base_url=base_url, api_key=api_key, **kwargs)
        self._region = validate_region(region or DEFAULT_REGION)

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.BEDROCK_MANTLE

    @property
    def sentinel(self) -> str:
        return MANTLE_SENTINEL

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.STREAMING,
            ProviderCapability.USAGE_REPORTING,
            ProviderCapability.REASONING,
            ProviderCapability.MODEL_DISCOVERY,
        }

    @property
    def region(self) -> str:
        return self._region

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    async def reconfigure(self, region: Optional[str] = None, **settings) -> None:
        if region is not None:
            self._region = validate_region(region)
        await super().reconfigure(**settings)

    def _request_headers(self) -> Optional[Dict[str, str]]:
        return {
            "X-Mantle-Api-Key": self._api_key or "",
            "X-Mantle-Region": self._region,
        }

    def _probe_headers(self) -> Optional[Dict[str, str]]:
        return self._request_headers()

    async def _before_request(self) -> None:
        if not self.has_api_key:
            raise ProviderUnavailableError(
                "Bedrock Mantle API key is required. Configure it before use.",
                provider=self.name,
            )

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": msg.role, "content": msg.content_as_string()}
                for msg in request.messages
            ],
            "stream": True,
        }
        payload.update(request.sampling_params())
        return payload

    async def probe(self) -> bool:
        if not self.has_api_key:
            return False
        return await super().probe()
