"""
Shared plumbing for adapters that talk HTTP with httpx.

Owns the lazily created AsyncClient, maps httpx failures onto the gateway
error taxonomy and drives a frame decoder over a streamed response body.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..core.cancellation import CancellationToken
from ..core.errors import (
    ProviderRejectedError,
    ProviderUnreachableError,
    StreamInterruptedError,
)
from ..core.interface import AbstractProviderAdapter
from ..streaming.frames import Frame, FrameDecoder, iter_frames
from .client_leases import ClientLeases

logger = logging.getLogger(__name__)


def error_message_from_body(body: bytes, status_code: int) -> str:
    """
    Best-effort human-readable message from an error response body.

    Understands `{"error": "..."}`, `{"error": {"message": "..."}}`,
    `{"message": "..."}` and `{"detail": "..."}`; otherwise falls back to
    the raw text.
    """
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text) if text else None
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        for key in ("message", "detail"):
            if data.get(key):
                return str(data[key])

    if text:
        return text[:500]
    return f"HTTP error! status: {status_code}"


class HttpStreamingAdapter(AbstractProviderAdapter):
    """Base class for adapters backed by an httpx.AsyncClient."""

    DEFAULT_BASE_URL = ""
    PROBE_PATH = "/models"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """
        Initialize the adapter.

        Args:
            base_url: Server URL (defaults to the adapter's DEFAULT_BASE_URL)
            api_key: Credential, for backends that need one
            timeout: Request timeout in seconds (generous for local inference)
            transport: Optional httpx transport, mainly for tests
        """
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._leases = ClientLeases(close=lambda client: client.aclose())

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        logger.info(f"Connected {self.name} adapter to {self._base_url}")

    async def disconnect(self) -> None:
        """Close the HTTP client, including any retired by reconfigure()."""
        await self._leases.close_all()
        if self._client:
            await self._client.aclose()
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

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.connect()
        return self._client

    def _check_response_errors(self, response: httpx.Response, body: bytes) -> None:
        """Raise ProviderRejectedError for any non-success status."""
        if response.is_success:
            return

        message = error_message_from_body(body, response.status_code)
        logger.error(f"{self.name} rejected request: {response.status_code} - {message}")
        raise ProviderRejectedError(
            message,
            provider=self.name,
            status_code=response.status_code,
        )

    async def _get_json(self, path: str, headers: Optional[Dict[str, str]] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            ProviderUnreachableError: On transport failure
            ProviderRejectedError: On error status or a body that is not JSON
        """
        client = await self._get_client()

        try:
            async with self._leases.lease(client):
                response = await client.get(path, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderUnreachableError(str(e) or e.__class__.__name__, provider=self.name)

        self._check_response_errors(response, response.content)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderRejectedError(
                f"Invalid JSON from {path}: {e}",
                provider=self.name,
                status_code=response.status_code,
            )

    def _probe_headers(self) -> Optional[Dict[str, str]]:
        return None

    async def probe(self) -> bool:
        """One GET against the probe path; True on any 2xx."""
        try:
            client = await self._get_client()
            async with self._leases.lease(client):
                response = await client.get(self.PROBE_PATH, headers=self._probe_headers())
            return response.is_success
        except Exception as e:
            logger.debug(f"{self.name} probe failed: {e}")
            return False

    async def _stream_frames(
        self,
        path: str,
        payload: Dict[str, Any],
        decoder: FrameDecoder,
        cancellation_token: Optional[CancellationToken] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[Frame]:
        """
        POST a request and yield decoded frames from the streamed body.

        Raises:
            ProviderUnreachableError: If the request cannot be sent
            ProviderRejectedError: If the response status is not 2xx
            StreamInterruptedError: If the body breaks off mid-stream
            ChatCancelledError: If the token fires
        """
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled(self.name)

        client = await self._get_client()

        try:
            async with self._leases.lease(client), client.stream(
                "POST", path, json=payload, headers=headers
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    self._check_response_errors(response, body)

                try:
                    async for frame in iter_frames(
                        response.aiter_bytes(), decoder, cancellation_token
                    ):
                        yield frame
                except httpx.HTTPError as e:
                    logger.error(f"{self.name} stream interrupted: {e}")
                    raise StreamInterruptedError(
                        f"Stream interrupted: {str(e) or e.__class__.__name__}",
                        provider=self.name,
                    )

        except httpx.HTTPError as e:
            logger.error(f"{self.name} unreachable at {self._base_url}: {e}")
            raise ProviderUnreachableError(str(e) or e.__class__.__name__, provider=self.name)
