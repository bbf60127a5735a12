"""Stdio transports: newline-delimited JSON over process pipes."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any

from parley.transport.base import (
    ConnectionError,
    FramingError,
    Transport,
    TransportError,
)
from parley.transport.framing import ReadBuffer, serialize_message
from parley.transport.types import TransportEvent, TransportEventType

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

# Environment variables a spawned server inherits by default
if sys.platform == "win32":
    DEFAULT_INHERITED_ENV_VARS = (
        "APPDATA",
        "HOMEDRIVE",
        "HOMEPATH",
        "LOCALAPPDATA",
        "PATH",
        "PROCESSOR_ARCHITECTURE",
        "SYSTEMDRIVE",
        "SYSTEMROOT",
        "TEMP",
        "USERNAME",
        "USERPROFILE",
        "PROGRAMFILES",
    )
else:
    DEFAULT_INHERITED_ENV_VARS = (
        "HOME",
        "LOGNAME",
        "PATH",
        "SHELL",
        "TERM",
        "USER",
        "LANG",
        "LC_ALL",
        "LC_CTYPE",
        "TZ",
    )


def get_default_environment() -> dict[str, str]:
    """
    Environment safe to pass to a spawned server.

    Values that look like exported shell functions are skipped.
    """
    env = {}
    for key in DEFAULT_INHERITED_ENV_VARS:
        value = os.environ.get(key)
        if value is None or value.startswith("()"):
            continue
        env[key] = value
    return env


@dataclass
class StdioServerParameters:
    """How to launch a server that speaks MCP on its stdin/stdout."""

    command: str
    """Executable to run."""

    args: list[str] = field(default_factory=list)
    """Command line arguments."""

    env: dict[str, str] | None = None
    """Extra environment variables, layered over the default environment."""

    cwd: str | None = None
    """Working directory for the process."""

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("command is required")


class _PipeTransport(Transport):
    """Shared read loop for transports backed by a byte stream pair."""

    def __init__(self) -> None:
        super().__init__()
        self._read_buffer = ReadBuffer()
        self._reader: asyncio.StreamReader | None = None
        self._writer: Any = None
        self._read_task: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()
        self._closing = False

    def _start_reading(self) -> None:
        self._read_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                chunk = await self._reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._read_buffer.append(chunk)
                self._drain_buffer()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                self._report_error(TransportError(f"Read failed: {e}", cause=e, fatal=True))
        finally:
            if not self._closing:
                logger.debug("Stdio stream reached EOF")
                self._notify_closed()

    def _drain_buffer(self) -> None:
        while True:
            try:
                message = self._read_buffer.read_message()
            except FramingError as e:
                logger.warning(f"Skipping undecodable line: {e}")
                self._report_error(e)
                continue
            if message is None:
                return
            self._emit_event(
                TransportEvent(type=TransportEventType.MESSAGE_RECEIVED, timestamp=time.time())
            )
            self._deliver(message)

    async def send(self, message: dict[str, Any]) -> None:
        if self._writer is None or self._closing:
            raise TransportError("Transport not connected")

        data = serialize_message(message)
        async with self._write_lock:
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise TransportError(f"Write failed: {e}", cause=e, fatal=True) from e

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

    async def _stop_reading(self) -> None:
        if self._read_task and not self._read_task.done():
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
        self._read_task = None
        self._read_buffer.clear()


class StdioClientTransport(_PipeTransport):
    """
    Client transport that spawns the server as a subprocess.

    The server's stderr is inherited, so its diagnostics reach the
    terminal rather than the protocol stream.
    """

    def __init__(self, params: StdioServerParameters):
        super().__init__()
        self.params = params
        self._process: asyncio.subprocess.Process | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def start(self) -> None:
        if self._process is not None:
            raise TransportError("StdioClientTransport already started")

        self._emit_event(
            TransportEvent(
                type=TransportEventType.STARTING,
                timestamp=time.time(),
                data={"command": self.params.command},
            )
        )

        env = {**get_default_environment(), **(self.params.env or {})}
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.params.command,
                *self.params.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                cwd=self.params.cwd,
                env=env,
            )
        except OSError as e:
            raise ConnectionError(f"Failed to launch {self.params.command}: {e}", cause=e) from e

        self._reader = self._process.stdout
        self._writer = self._process.stdin
        self._start_reading()

        logger.info(f"Launched server: {self.params.command} (pid={self._process.pid})")
        self._emit_event(TransportEvent(type=TransportEventType.STARTED, timestamp=time.time()))

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True

        await self._stop_reading()

        if self._writer is not None:
            self._writer.close()
            self._writer = None

        if self._process is not None:
            if self._process.returncode is None:
                self._process.terminate()
                try:
                    await asyncio.wait_for(self._process.wait(), timeout=5.0)
                except asyncio.TimeoutError:
                    self._process.kill()
                    await self._process.wait()
            logger.info(f"Server process exited (pid={self._process.pid})")
            self._process = None

        self._emit_event(TransportEvent(type=TransportEventType.CLOSED, timestamp=time.time()))
        self._notify_closed()


class StdioServerTransport(_PipeTransport):
    """
    Server transport speaking on this process's stdin/stdout.

    A reader/writer pair may be passed in instead, e.g. for tests.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: Any = None,
    ):
        super().__init__()
        self._reader = reader
        self._writer = writer
        self._started = False

    async def start(self) -> None:
        if self._started:
            raise TransportError("StdioServerTransport already started")
        self._started = True

        loop = asyncio.get_running_loop()
        if self._reader is None:
            self._reader = asyncio.StreamReader()
            protocol = asyncio.StreamReaderProtocol(self._reader)
            await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)

        if self._writer is None:
            transport, proto = await loop.connect_write_pipe(
                asyncio.streams.FlowControlMixin,
                sys.stdout.buffer,
            )
            self._writer = asyncio.StreamWriter(transport, proto, None, loop)

        self._start_reading()
        self._emit_event(TransportEvent(type=TransportEventType.STARTED, timestamp=time.time()))

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True

        await self._stop_reading()
        self._writer = None

        self._emit_event(TransportEvent(type=TransportEventType.CLOSED, timestamp=time.time()))
        self._notify_closed()
