"""
Cooperative cancellation for chat streams.

A CancellationToken is created by the caller for one ChatRequest and passed
explicitly through the adapter, the frame loop and the gateway token loop.
Every layer checks it at its own suspension points; nothing is preempted.
"""

import asyncio
from typing import Optional

from .errors import ChatCancelledError


class CancellationToken:
    """Single-use cancellation signal for one chat request."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation. Calling it more than once is harmless."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self, provider: Optional[str] = None) -> None:
        """
        Raise ChatCancelledError if cancel() has been called.

        Args:
            provider: Provider id to attach to the error
        """
        if self._event.is_set():
            raise ChatCancelledError(self._reason or "Chat cancelled", provider=provider)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
