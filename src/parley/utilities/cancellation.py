"""Cooperative cancellation for request handlers."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from parley.protocol.errors import RequestCancelledError

logger = logging.getLogger(__name__)

CancellationCallback = Callable[[str | None], None]


class CancellationToken:
    """
    Flag a handler polls (or awaits) to learn its request was cancelled.

    The session sets it when the peer sends notifications/cancelled for
    the request being handled, or when the session closes. Nothing is
    interrupted: the handler decides when to stop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._callbacks: list[CancellationCallback] = []

    @property
    def cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason given by whoever cancelled, if any."""
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """
        Request cancellation. Only the first call has an effect.

        Args:
            reason: Optional reason for cancellation.

        Returns:
            True if this call cancelled the token.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        for callback in self._callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("Cancellation callback failed")
        self._callbacks.clear()
        return True

    def on_cancel(self, callback: CancellationCallback) -> None:
        """
        Register a callback run once on cancellation.

        Runs immediately if the token is already cancelled.
        """
        if self.cancelled:
            callback(self._reason)
        else:
            self._callbacks.append(callback)

    async def wait(self) -> str | None:
        """Wait until cancelled; returns the reason."""
        await self._event.wait()
        return self._reason

    def raise_if_cancelled(self) -> None:
        """
        Raise if cancellation was requested.

        Raises:
            RequestCancelledError: When the token is cancelled.
        """
        if self.cancelled:
            raise RequestCancelledError.because(self._reason)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self._reason!r})"
