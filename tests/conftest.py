"""Pytest configuration and fixtures."""

import asyncio
from typing import Any

import pytest

from parley.protocol.session import ProtocolSession
from parley.transport.memory import InMemoryTransport
from parley.transport.types import MessageExtra

# Async tests are marked explicitly with @pytest.mark.asyncio
pytest_plugins = ["pytest_asyncio"]


async def _drain(cycles: int = 10) -> None:
    for _ in range(cycles):
        await asyncio.sleep(0)


@pytest.fixture
def drain():
    """Async helper that lets scheduled deliveries and handler tasks run."""
    return _drain


class RecordingPeer:
    """
    The far end of an in-memory pair with no session attached.

    Records what the session under test sends and lets the test reply
    with hand-written messages.
    """

    def __init__(self, transport: InMemoryTransport):
        self.transport = transport
        self.received: list[Any] = []
        self.extras: list[MessageExtra | None] = []
        transport.on_message = self._record

    def _record(self, message: Any, extra: MessageExtra | None) -> None:
        self.received.append(message)
        self.extras.append(extra)

    async def send(self, message: dict[str, Any]) -> None:
        await self.transport.send(message)

    def requests(self, method: str | None = None) -> list[dict[str, Any]]:
        return [
            m for m in self.received
            if "id" in m and "method" in m and (method is None or m["method"] == method)
        ]

    def notifications(self, method: str | None = None) -> list[dict[str, Any]]:
        return [
            m for m in self.received
            if "id" not in m and "method" in m and (method is None or m["method"] == method)
        ]

    def responses(self) -> list[dict[str, Any]]:
        return [m for m in self.received if "method" not in m]

    def response_for(self, request_id: Any) -> dict[str, Any] | None:
        for message in self.responses():
            if message.get("id") == request_id:
                return message
        return None


@pytest.fixture
def attach_peer():
    """Connect a session to a RecordingPeer; returns an async factory."""

    async def _attach(session: ProtocolSession, auth_token: str | None = None):
        session_end, peer_end = InMemoryTransport.create_linked_pair()
        peer = RecordingPeer(peer_end)
        peer_end.auth_token = auth_token
        await peer_end.start()
        await session.connect(session_end)
        return session_end, peer

    return _attach


@pytest.fixture
def connect_pair():
    """Connect two sessions to each other; returns an async factory."""

    async def _connect(client: ProtocolSession, server: ProtocolSession, auth_token: str | None = None):
        client_end, server_end = InMemoryTransport.create_linked_pair(client_auth_token=auth_token)
        await server.connect(server_end)
        await client.connect(client_end)
        return client_end, server_end

    return _connect
