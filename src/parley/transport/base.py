"""Abstract base transport and error types."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

from parley.transport.types import MessageExtra, TransportEvent

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any, "MessageExtra | None"], None]
CloseCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class TransportError(Exception):
    """
    Base exception for transport errors.

    A fatal error means the channel is unusable; the session treats it
    like a closed transport.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        fatal: bool = False,
    ):
        super().__init__(message)
        self.cause = cause
        self.fatal = fatal


class ConnectionError(TransportError):
    """Failed to establish connection to the peer."""

    pass


class TimeoutError(TransportError):
    """A transport-level exchange timed out."""

    pass


class SessionError(TransportError):
    """Session-related error (expired, invalid, not established)."""

    pass


class FramingError(TransportError):
    """A received frame could not be decoded as JSON."""

    pass


class Transport(ABC):
    """
    Abstract base class for MCP transports.

    A transport is a duplex channel of decoded JSON-RPC messages. It
    pushes what it receives into ``on_message`` and reports closure and
    errors through ``on_close`` / ``on_error``; the session assigns
    these callbacks before calling ``start()``.
    """

    def __init__(self) -> None:
        self.on_message: MessageCallback | None = None
        self.on_close: CloseCallback | None = None
        self.on_error: ErrorCallback | None = None
        self._event_handlers: list[Callable[[TransportEvent], None]] = []
        self._close_notified = False

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event: TransportEvent) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Transport event handler failed for {event.type.name}")

    def _deliver(self, message: Any, extra: MessageExtra | None = None) -> None:
        """Hand one received message to the session."""
        if self.on_message is None:
            logger.warning("Dropping message: no on_message callback set")
            return
        self.on_message(message, extra)

    def _report_error(self, error: Exception) -> None:
        """Report a transport error to the session."""
        if self.on_error is not None:
            self.on_error(error)
        else:
            logger.error(f"Transport error: {error}")

    def _notify_closed(self) -> None:
        """Fire ``on_close`` once, however many paths observe the closure."""
        if self._close_notified:
            return
        self._close_notified = True
        if self.on_close is not None:
            self.on_close()

    @abstractmethod
    async def start(self) -> None:
        """
        Start delivering messages.

        Raises:
            ConnectionError: If the channel cannot be opened.
        """
        pass

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one JSON-RPC message to the peer.

        Args:
            message: A JSON-serializable JSON-RPC message.

        Raises:
            TransportError: If the message cannot be sent.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close the channel and release all resources.

        Safe to call multiple times; ``on_close`` fires once.
        """
        pass

    @property
    def session_id(self) -> str | None:
        """Transport-level session ID, if the transport has one."""
        return None

    def set_protocol_version(self, version: str) -> None:
        """Called by the session once the protocol version is negotiated."""
        pass

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
