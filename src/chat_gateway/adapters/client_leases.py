"""
Lifetime tracking for adapter clients.

Reconfiguring an adapter swaps in a new client for new requests. A client
replaced while requests are still reading from it is retired: it stays open
until its last lease is released, then closes.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class ClientLeases:
    """Counts in-flight requests per client and defers closing retired ones."""

    def __init__(self, close: Callable[[Any], Awaitable[None]]):
        self._close = close
        self._in_use: Dict[int, int] = {}
        self._retired: Dict[int, Any] = {}

    def in_use(self, client: Any) -> int:
        return self._in_use.get(id(client), 0)

    def is_retired(self, client: Any) -> bool:
        return id(client) in self._retired

    @asynccontextmanager
    async def lease(self, client: Any) -> AsyncIterator[Any]:
        """Hold `client` open for the duration of the block."""
        key = id(client)
        self._in_use[key] = self._in_use.get(key, 0) + 1
        try:
            yield client
        finally:
            self._in_use[key] -= 1
            if not self._in_use[key]:
                del self._in_use[key]
                retired = self._retired.pop(key, None)
                if retired is not None:
                    logger.debug("Closing retired client after its last request")
                    await self._close(retired)

    async def retire(self, client: Any) -> None:
        """Close `client` now if idle, otherwise once its last lease ends."""
        if self.in_use(client):
            self._retired[id(client)] = client
            logger.debug(f"Retiring client with {self.in_use(client)} request(s) in flight")
        else:
            await self._close(client)

    async def close_all(self) -> None:
        """Close retired clients regardless of outstanding leases."""
        retired = list(self._retired.values())
        self._retired.clear()
        for client in retired:
            await self._close(client)
