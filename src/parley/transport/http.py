"""Streamable HTTP transport implementation for MCP."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator

import httpx

from parley.lib import oj
from parley.transport.base import (
    ConnectionError,
    SessionError,
    TimeoutError,
    Transport,
    TransportError,
)
from parley.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)


class StreamableHTTPTransport(Transport):
    """
    Client side of the Streamable HTTP transport.

    This transport supports:
    - HTTP POST for every client-to-server message
    - Immediate JSON replies and Server-Sent Events (SSE) reply streams
    - Session management via the Mcp-Session-Id header
    - Concurrent request limiting
    """

    MCP_SESSION_HEADER = "Mcp-Session-Id"
    MCP_PROTOCOL_VERSION_HEADER = "MCP-Protocol-Version"

    def __init__(self, config: TransportConfig):
        super().__init__()
        self.config = config
        self._client: httpx.AsyncClient | None = None
        self._session_id: str | None = None
        self._protocol_version: str | None = None
        self._started: bool = False
        self._closing: bool = False
        self._sse_tasks: set[asyncio.Task] = set()
        self._request_semaphore: asyncio.Semaphore | None = None

    @property
    def session_id(self) -> str | None:
        """Current MCP session ID."""
        return self._session_id

    @property
    def protocol_version(self) -> str | None:
        return self._protocol_version

    def set_protocol_version(self, version: str) -> None:
        self._protocol_version = version

    def is_connected(self) -> bool:
        return self._started and not self._closing

    async def start(self) -> None:
        """
        Create the HTTP client.

        The MCP session itself is established by the first exchange,
        not here.
        """
        if self._started:
            raise TransportError("StreamableHTTPTransport already started")

        self._emit_event(
            TransportEvent(
                type=TransportEventType.STARTING,
                timestamp=time.time(),
                data={"url": self.config.url},
            )
        )

        try:
            timeout = httpx.Timeout(
                connect=self.config.connect_timeout,
                read=self.config.timeout,
                write=self.config.timeout,
                pool=self.config.timeout,
            )
            # No base_url: httpx appends trailing slashes some servers reject
            self._client = httpx.AsyncClient(
                timeout=timeout,
                headers=self.config.headers,
                verify=self.config.verify_ssl,
            )
        except Exception as e:
            raise ConnectionError(f"Failed to initialize HTTP client: {e}", cause=e) from e

        self._request_semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)
        self._started = True
        self._emit_event(TransportEvent(type=TransportEventType.STARTED, timestamp=time.time()))

    def _common_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._session_id:
            headers[self.MCP_SESSION_HEADER] = self._session_id
        if self._protocol_version:
            headers[self.MCP_PROTOCOL_VERSION_HEADER] = self._protocol_version
        return headers

    async def send(self, message: dict[str, Any]) -> None:
        """
        POST one message to the server.

        Replies (immediate JSON or an SSE stream) are delivered through
        ``on_message``, not returned.

        Raises:
            SessionError: If not started, closing, or the session expired.
            TimeoutError: If the HTTP exchange times out.
            TransportError: For any other HTTP failure.
        """
        if self._client is None or not self.is_connected():
            raise SessionError("Transport not connected")

        assert self._request_semaphore is not None
        async with self._request_semaphore:
            await self._post(message)

    async def _post(self, message: dict[str, Any]) -> None:
        assert self._client is not None
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self._common_headers(),
        }

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

        request = self._client.build_request(
            "POST",
            self.config.url,
            content=oj.dumps(message),
            headers=headers,
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out: {e}", cause=e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", cause=e) from e

        self._track_session(response)
        content_type = response.headers.get("Content-Type", "")

        if "text/event-stream" in content_type and response.status_code < 400:
            self._start_sse_stream(response)
            return

        try:
            body = await response.aread()
        finally:
            await response.aclose()

        if response.status_code == 404 and self._session_id is not None:
            expired = self._session_id
            self._session_id = None
            error = SessionError(f"Session {expired} expired or unknown", fatal=True)
            self._report_error(error)
            raise error

        if response.status_code >= 400:
            raise TransportError(f"HTTP {response.status_code}: {body.decode(errors='replace')}")

        if response.status_code == 202 or not body:
            return

        if "application/json" in content_type:
            try:
                payload = oj.loads(body)
            except oj.JSONDecodeError as e:
                raise TransportError(f"Failed to parse response: {e}", cause=e) from e
            # A JSON reply may be a single message or a batch
            for item in payload if isinstance(payload, list) else [payload]:
                self._receive(item)

    def _track_session(self, response: httpx.Response) -> None:
        new_session = response.headers.get(self.MCP_SESSION_HEADER)
        if new_session and new_session != self._session_id:
            self._session_id = new_session
            logger.debug(f"HTTP session established: {new_session}")
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.SESSION_ESTABLISHED,
                    timestamp=time.time(),
                    data={"session_id": new_session},
                )
            )

    def _receive(self, message: Any) -> None:
        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_RECEIVED,
                timestamp=time.time(),
                data={"id": message.get("id") if isinstance(message, dict) else None},
            )
        )
        self._deliver(message)

    def _start_sse_stream(self, response: httpx.Response) -> None:
        """Process one SSE reply stream in the background."""
        task = asyncio.create_task(self._process_sse_stream(response))
        self._sse_tasks.add(task)
        task.add_done_callback(self._sse_tasks.discard)
        self._emit_event(TransportEvent(type=TransportEventType.SSE_OPENED, timestamp=time.time()))

    async def _process_sse_stream(self, response: httpx.Response) -> None:
        try:
            async for message in self._parse_sse_stream(response):
                self._receive(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                logger.warning(f"SSE stream failed: {e}")
                self._emit_event(
                    TransportEvent(type=TransportEventType.ERROR, timestamp=time.time(), error=e)
                )
                self._report_error(TransportError(f"SSE stream failed: {e}", cause=e))
        finally:
            await response.aclose()
            self._emit_event(
                TransportEvent(type=TransportEventType.SSE_CLOSED, timestamp=time.time())
            )

    async def _parse_sse_stream(self, response: httpx.Response) -> AsyncIterator[Any]:
        """Parse a Server-Sent Events stream into JSON-RPC messages."""
        buffer = ""

        async for chunk in response.aiter_text():
            buffer += chunk.replace("\r\n", "\n")

            # Events are delimited by blank lines
            while "\n\n" in buffer:
                event_str, buffer = buffer.split("\n\n", 1)
                event = self._parse_sse_event(event_str)
                if not event or "data" not in event:
                    continue
                if event.get("event", "message") != "message":
                    continue
                try:
                    yield oj.loads(event["data"])
                except oj.JSONDecodeError as e:
                    logger.warning(f"Skipping malformed SSE data: {e}")
                    self._report_error(TransportError(f"Malformed SSE data: {e}", cause=e))

    def _parse_sse_event(self, event_str: str) -> dict[str, str] | None:
        """
        Parse a single SSE event into its fields.

        SSE format:
            event: <event-type>
            data: <data>
            id: <id>

        Only ``data`` matters for JSON-RPC; multi-line data is joined.
        """
        if not event_str.strip():
            return None

        event: dict[str, str] = {}
        data_lines: list[str] = []

        for line in event_str.split("\n"):
            if not line or line.startswith(":"):
                continue

            name, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]

            if name == "data":
                data_lines.append(value)
            elif name in ("event", "id", "retry"):
                event[name] = value

        if data_lines:
            event["data"] = "\n".join(data_lines)

        return event or None

    async def terminate_session(self) -> None:
        """
        Ask the server to end the current session (HTTP DELETE).

        A 405 reply means the server does not support explicit
        termination and is not an error.
        """
        if self._client is None or self._session_id is None:
            return

        try:
            response = await self._client.delete(self.config.url, headers=self._common_headers())
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to terminate session: {e}", cause=e) from e

        if response.status_code >= 400 and response.status_code != 405:
            raise TransportError(f"HTTP {response.status_code} terminating session")
        logger.debug(f"HTTP session terminated: {self._session_id}")
        self._session_id = None

    async def close(self) -> None:
        """Stop SSE streams and close the HTTP client."""
        if self._closing or not self._started:
            if not self._started:
                self._notify_closed()
            return

        self._closing = True
        self._emit_event(TransportEvent(type=TransportEventType.CLOSING, timestamp=time.time()))

        for task in list(self._sse_tasks):
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._sse_tasks.clear()

        if self._client is not None:
            await self._client.aclose()
            self._client = None

        self._session_id = None
        self._emit_event(TransportEvent(type=TransportEventType.CLOSED, timestamp=time.time()))
        self._notify_closed()
