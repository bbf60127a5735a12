"""In-process transport pair, mainly for tests."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from parley.lib import oj
from parley.transport.base import Transport, TransportError
from parley.transport.types import MessageExtra, TransportEvent, TransportEventType

logger = logging.getLogger(__name__)


class InMemoryTransport(Transport):
    """
    One end of a linked in-memory channel.

    Messages are encoded and decoded with the JSON codec, so whatever
    arrives at the peer is exactly what would cross a real wire. Delivery
    happens on a later loop iteration, never inside ``send()``.
    """

    def __init__(self, auth_token: str | None = None):
        """
        Args:
            auth_token: Bearer token attached to every message this end sends.
        """
        super().__init__()
        self.auth_token = auth_token
        self.sent: list[dict[str, Any]] = []
        self._peer: InMemoryTransport | None = None
        self._started = False
        self._closed = False
        self._backlog: list[tuple[Any, MessageExtra | None]] = []

    @classmethod
    def create_linked_pair(
        cls,
        client_auth_token: str | None = None,
    ) -> tuple["InMemoryTransport", "InMemoryTransport"]:
        """
        Create two transports wired to each other.

        Returns:
            (client_end, server_end)
        """
        client_end = cls(auth_token=client_auth_token)
        server_end = cls()
        client_end._peer = server_end
        server_end._peer = client_end
        return client_end, server_end

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._started:
            raise TransportError("InMemoryTransport already started")
        self._started = True
        self._emit_event(TransportEvent(type=TransportEventType.STARTED, timestamp=time.time()))

        backlog, self._backlog = self._backlog, []
        loop = asyncio.get_running_loop()
        for message, extra in backlog:
            loop.call_soon(self._receive_now, message, extra)

    async def send(self, message: dict[str, Any]) -> None:
        if self._closed:
            raise TransportError("Transport is closed")
        if self._peer is None:
            raise TransportError("Transport has no peer")

        # Round-trip through the codec: the peer must never share our objects
        wire = oj.loads(oj.dumps(message))
        self.sent.append(wire)
        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

        extra = MessageExtra(auth_token=self.auth_token) if self.auth_token else None
        self._peer._enqueue(wire, extra)

    def _enqueue(self, message: Any, extra: MessageExtra | None) -> None:
        if self._closed:
            return
        if not self._started:
            self._backlog.append((message, extra))
            return
        asyncio.get_running_loop().call_soon(self._receive_now, message, extra)

    def _receive_now(self, message: Any, extra: MessageExtra | None) -> None:
        if self._closed:
            logger.debug("Dropping message delivered after close")
            return
        self._emit_event(
            TransportEvent(type=TransportEventType.MESSAGE_RECEIVED, timestamp=time.time())
        )
        self._deliver(message, extra)

    def inject(self, message: Any, extra: MessageExtra | None = None) -> None:
        """
        Deliver a message as if the peer had sent it, synchronously.

        Accepts any JSON value, including malformed messages.
        """
        self._deliver(message, extra)

    def clear_sent(self) -> None:
        """Forget recorded outgoing messages."""
        self.sent.clear()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._backlog.clear()
        self._emit_event(TransportEvent(type=TransportEventType.CLOSED, timestamp=time.time()))
        self._notify_closed()

        peer, self._peer = self._peer, None
        if peer is not None:
            await peer.close()
