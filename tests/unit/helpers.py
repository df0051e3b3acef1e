"""
Shared helpers for unit tests.

HTTP backends are simulated with httpx.MockTransport; streamed bodies are
produced by async generators so chunk boundaries are under test control.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Set

import httpx

from chat_gateway.core.interface import AbstractProviderAdapter, ProviderCapability
from chat_gateway.models import ChatMessage, ChatRequest, ModelDescriptor, ProviderId


def sse_body(*payloads: Any, done: bool = True) -> bytes:
    """SSE body with one `data:` record per payload, optionally closed by [DONE]."""
    lines = [f"data: {json.dumps(p)}\n\n" for p in payloads]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def ndjson_body(*records: Dict[str, Any]) -> bytes:
    return "".join(json.dumps(r) + "\n" for r in records).encode("utf-8")


def split_every(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


async def stream_chunks(chunks: Iterable[bytes], error: Optional[Exception] = None) -> AsyncIterator[bytes]:
    """Yield chunks, then raise `error` if given (a connection reset mid-body)."""
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def user_request(text: str = "Hello", model: str = "test-model", **kwargs) -> ChatRequest:
    return ChatRequest(
        model=model,
        messages=[ChatMessage(role="user", content=text)],
        **kwargs,
    )


class ScriptedAdapter(AbstractProviderAdapter):
    """
    In-memory adapter that replays a fixed sideband stream.

    `items` is what stream_text yields; `models` / `models_error` drive
    list_models(); `probe_result` may be a bool or an exception to raise.
    """

    def __init__(
        self,
        provider_id: ProviderId,
        items: Optional[List[str]] = None,
        models: Optional[List[str]] = None,
        models_error: Optional[Exception] = None,
        probe_result: Any = True,
        stream_error: Optional[Exception] = None,
        sentinel: str = "__TEST_METADATA__",
    ):
        self._provider_id = provider_id
        self._items = items or []
        self._models = models or []
        self._models_error = models_error
        self._probe_result = probe_result
        self._stream_error = stream_error
        self._sentinel = sentinel
        self.settings: Dict[str, Any] = {}
        self.disconnected = False

    @property
    def provider_id(self) -> ProviderId:
        return self._provider_id

    @property
    def sentinel(self) -> str:
        return self._sentinel

    @property
    def capabilities(self) -> Set[ProviderCapability]:
        return {ProviderCapability.STREAMING}

    async def stream_text(self, request: ChatRequest) -> AsyncIterator[str]:
        token = request.cancellation_token
        for item in self._items:
            if token is not None:
                token.raise_if_cancelled(self.name)
            yield item
        if self._stream_error is not None:
            raise self._stream_error

    async def list_models(self) -> List[ModelDescriptor]:
        if self._models_error is not None:
            raise self._models_error
        return [
            ModelDescriptor(model_id=m, display_name=m, provider_id=self._provider_id)
            for m in self._models
        ]

    async def probe(self) -> bool:
        if isinstance(self._probe_result, BaseException):
            raise self._probe_result
        return self._probe_result

    async def reconfigure(self, **settings) -> None:
        self.settings.update(settings)

    async def disconnect(self) -> None:
        self.disconnected = True


def _http_chunk(data: bytes) -> bytes:
    return f"{len(data):x}\r\n".encode("ascii") + data + b"\r\n"


class PausingSSEServer:
    """
    HTTP/1.1 server on a real loopback socket.

    Answers every request with a chunked SSE body: `first` is sent at once,
    `rest` only after `release` is set, then the body is closed.
    """

    def __init__(self, first: bytes, rest: bytes = b""):
        self.first = first
        self.rest = rest
        self.release = asyncio.Event()
        self.port = None
        self._server = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def __aenter__(self) -> "PausingSSEServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.release.set()
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        head = await reader.readuntil(b"\r\n\r\n")
        length = 0
        for line in head.decode("latin-1").split("\r\n"):
            name, _, value = line.partition(":")
            if name.strip().lower() == "content-length":
                length = int(value.strip())
        if length:
            await reader.readexactly(length)

        writer.write(
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/event-stream\r\n"
            b"Transfer-Encoding: chunked\r\n"
            b"Connection: close\r\n\r\n"
        )
        writer.write(_http_chunk(self.first))
        await writer.drain()

        await self.release.wait()
        if self.rest:
            writer.write(_http_chunk(self.rest))
        writer.write(b"0\r\n\r\n")
        await writer.drain()
        writer.close()
