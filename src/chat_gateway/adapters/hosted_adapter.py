"""
Hosted API adapters (Groq, Cerebras).

Both providers expose OpenAI-compatible endpoints gated by an API key, so
framing is delegated entirely to the official `openai` client. The adapter
only orders what comes out of it: reasoning first, then content, then one
synthesized usage record with the measured wall-clock latency.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

import httpx
import openai
from openai import AsyncOpenAI

from ..core.errors import (
    DecodeError,
    ProviderRejectedError,
    ProviderUnavailableError,
    ProviderUnreachableError,
    StreamInterruptedError,
)
from ..core.interface import AbstractProviderAdapter, ProviderCapability
from ..models.provider import ProviderId
from ..models.request import ChatRequest
from ..models.response import ModelDescriptor, UsageRecord
from ..streaming.frames import as_count, as_text
from ..streaming.sideband import HOSTED_SENTINEL
from .client_leases import ClientLeases

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
CEREBRAS_BASE_URL = "https://api.cerebras.ai/v1"

# (model id, display name, context window)
GROQ_MODELS = [
    ("llama-3.3-70b-versatile", "Llama 3.3 70B Versatile", 131072),
    ("llama-3.1-8b-instant", "Llama 3.1 8B Instant", 131072),
    ("llama-3.1-70b-versatile", "Llama 3.1 70B Versatile", 131072),
    ("mixtral-8x7b-32768", "Mixtral 8x7B", 32768),
    ("gemma2-9b-it", "Gemma 2 9B", 8192),
]

CEREBRAS_MODELS = [
    ("llama-3.3-70b", "Llama 3.3 70B", 8192),
    ("llama3.1-8b", "Llama 3.1 8B", 8192),
]


def _field(obj: Any, name: str) -> Any:
    """Read an attribute from an SDK object or a key from a plain dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def chunk_usage(chunk: Any) -> Optional[Dict[str, Optional[int]]]:
    """
    Token counts reported on a stream chunk.

    Standard `usage` is preferred; Groq also reports usage under
    `x_groq.usage` on the final chunk.

    Raises:
        DecodeError: If a count is not a number
    """
    usage = _field(chunk, "usage")
    if usage is None:
        usage = _field(_field(chunk, "x_groq"), "usage")
    if usage is None:
        return None
    return {
        "input_tokens": as_count(_field(usage, "prompt_tokens"), "usage.prompt_tokens"),
        "output_tokens": as_count(_field(usage, "completion_tokens"), "usage.completion_tokens"),
    }


def chunk_delta(chunk: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    (content, reasoning) from the first choice of a stream chunk.

    Raises:
        DecodeError: If the delta carries text that is not a string
    """
    choices = _field(chunk, "choices")
    if not choices:
        return None, None
    if not isinstance(choices, list):
        raise DecodeError("choices is not a list")

    delta = _field(choices[0], "delta")
    return (
        as_text(_field(delta, "content"), "delta.content"),
        as_text(_field(delta, "reasoning"), "delta.reasoning"),
    )


class HostedAPIAdapter(AbstractProviderAdapter):
    """
    Adapter for an API-key-gated OpenAI-compatible hosted provider.

    Subclasses set the provider id, base URL and static model catalog.
    """

    DEFAULT_BASE_URL = ""
    MODELS: List[tuple] = []

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """
        Initialize the adapter.

        Args:
            base_url: OpenAI-compatible endpoint (defaults per provider)
            api_key: Provider API key; without one the adapter lists no
                models and refuses to chat
            timeout: Request timeout in seconds
            http_client: Optional httpx client handed to the openai SDK
            transport: Optional httpx transport for an adapter-owned client, mainly for tests
        """
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._http_client = http_client
        self._transport = transport
        self._client: Optional[AsyncOpenAI] = None
        self._leases = ClientLeases(close=self._close_client)

    @property
    def sentinel(self) -> str:
        return HOSTED_SENTINEL

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {
            ProviderCapability.STREAMING,
            ProviderCapability.USAGE_REPORTING,
            ProviderCapability.LATENCY_REPORTING,
            ProviderCapability.REASONING,
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key and self._api_key.strip())

    async def connect(self) -> None:
        if self._client is not None:
            return

        self._client = AsyncOpenAI(
            api_key=self._api_key or "",
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._http_client or self._owned_http_client(),
        )
        logger.info(f"Connected {self.name} adapter to {self._base_url}")

    def _owned_http_client(self) -> Optional[httpx.AsyncClient]:
        if self._transport is None:
            return None
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def _close_client(self, client: AsyncOpenAI) -> None:
        # An injected http_client belongs to the caller
        if self._http_client is None:
            await client.close()

    async def disconnect(self) -> None:
        await self._leases.close_all()
        if self._client:
            await self._close_client(self._client)
            self._client = None
            logger.info(f"Disconnected {self.name} adapter")

    async def reconfigure(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        **settings,
    ) -> None:
        if settings:
            raise ValueError(f"{self.name} does not accept settings: {sorted(settings)}")

        if base_url is not None:
            self._base_url = base_url.rstrip("/")
        if api_key is not None:
            self._api_key = api_key or None
        if timeout is not None:
            self._timeout = timeout

        # Streams already reading from the old client finish on it
        if self._client is not None:
            client, self._client = self._client, None
            await self._leases.retire(client)
        logger.info(f"Reconfigured {self.name} adapter")

    async def _get_client(self) -> AsyncOpenAI:
        if not self.has_api_key:
            raise ProviderUnavailableError(
                f"{self.name} API key is required. Configure it before use.",
                provider=self.name,
            )
        if self._client is None:
            await self.connect()
        return self._client

    def _map_error(self, e: Exception) -> ProviderUnavailableError:
        if isinstance(e, openai.APIStatusError):
            return ProviderRejectedError(e.message, provider=self.name, status_code=e.status_code)
        return ProviderUnreachableError(str(e) or e.__class__.__name__, provider=self.name)

    def _build_params(self, request: ChatRequest) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": request.model,
            "messages": request.to_openai_messages(),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        params.update(request.sampling_params())
        return params

    async def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        """
        Stream a chat completion.

        Reasoning deltas are held back until the first content delta (or the
        end of the stream) and then emitted ahead of it, so reasoning always
        precedes content. This delays the first visible token for models
        that reason before answering.
        """
        token = request.cancellation_token
        if token is not None:
            token.raise_if_cancelled(self.name)

        client = await self._get_client()
        codec = self.codec
        start = time.monotonic()

        reasoning_parts: List[str] = []
        content_started = False
        input_tokens = output_tokens = None

        async with self._leases.lease(client):
            try:
                stream = await client.chat.completions.create(**self._build_params(request))
            except (openai.APIStatusError, openai.APIConnectionError) as e:
                logger.error(f"{self.name} request failed: {e}")
                raise self._map_error(e)

            async with stream:
                try:
                    async for chunk in stream:
                        if token is not None:
                            token.raise_if_cancelled(self.name)

                        try:
                            usage = chunk_usage(chunk)
                            content, reasoning = chunk_delta(chunk)
                        except DecodeError as e:
                            logger.warning(f"Skipping chunk from {self.name}: {e.message}")
                            continue

                        if usage is not None:
                            input_tokens = usage["input_tokens"]
                            output_tokens = usage["output_tokens"]

                        if reasoning:
                            if content_started:
                                logger.debug(f"{self.name}: dropping reasoning after content")
                            else:
                                reasoning_parts.append(reasoning)

                        if content:
                            if not content_started:
                                content_started = True
                                if reasoning_parts:
                                    yield codec.encode_reasoning("".join(reasoning_parts))
                                    reasoning_parts = []
                            yield content

                except (openai.APIError, httpx.HTTPError) as e:
                    logger.error(f"{self.name} stream interrupted: {e}")
                    raise StreamInterruptedError(
                        f"Stream interrupted: {str(e) or e.__class__.__name__}",
                        provider=self.name,
                    )

        if reasoning_parts:
            yield codec.encode_reasoning("".join(reasoning_parts))

        latency_ms = int((time.monotonic() - start) * 1000)
        usage_record = UsageRecord(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=(input_tokens or 0) + (output_tokens or 0),
            latency_ms=latency_ms,
        )
        logger.debug(f"{self.name} usage: {usage_record}, latency {latency_ms}ms")
        yield codec.encode_usage(usage_record)

    async def list_models(self) -> List[ModelDescriptor]:
        """Static catalog, offered only when an API key is configured."""
        if not self.has_api_key:
            logger.debug(f"{self.name}: no API key, no models")
            return []

        return [
            ModelDescriptor(
                model_id=model_id,
                display_name=display_name,
                provider_id=self.provider_id,
                context_length=context_length,
            )
            for model_id, display_name, context_length in self.MODELS
        ]

    async def probe(self) -> bool:
        """Authenticated `GET /models`; False without an API key."""
        if not self.has_api_key:
            return False
        try:
            client = await self._get_client()
            async with self._leases.lease(client):
                await client.models.list()
            return True
        except Exception as e:
            logger.debug(f"{self.name} probe failed: {e}")
            return False


class GroqAdapter(HostedAPIAdapter):
    DEFAULT_BASE_URL = GROQ_BASE_URL
    MODELS = GROQ_MODELS

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.GROQ


class CerebrasAdapter(HostedAPIAdapter):
    DEFAULT_BASE_URL = CEREBRAS_BASE_URL
    MODELS = CEREBRAS_MODELS

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.CEREBRAS
