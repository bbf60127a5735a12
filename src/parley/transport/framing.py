"""Newline-delimited JSON framing for stream transports."""

from __future__ import annotations

from typing import Any

from parley.lib import oj
from parley.transport.base import FramingError


class ReadBuffer:
    """
    Buffers a continuous byte stream into discrete JSON messages.

    One message per line; a trailing carriage return is tolerated and
    blank lines are skipped.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def append(self, chunk: bytes) -> None:
        """Append raw bytes read from the stream."""
        self._buffer.extend(chunk)

    def read_message(self) -> Any | None:
        """
        Take the next complete message off the buffer.

        Returns:
            The decoded JSON value, or None if no complete line is buffered.

        Raises:
            FramingError: If the next line is not valid JSON. The line is
                consumed, so reading can continue with the following one.
        """
        while True:
            newline = self._buffer.find(b"\n")
            if newline == -1:
                return None

            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            line = line.rstrip(b"\r")
            if not line.strip():
                continue

            try:
                return oj.loads(line)
            except oj.JSONDecodeError as e:
                raise FramingError(f"Invalid JSON frame: {e}", cause=e) from e

    def clear(self) -> None:
        """Discard any buffered bytes."""
        self._buffer.clear()

    @property
    def has_data(self) -> bool:
        return len(self._buffer) > 0


def serialize_message(message: dict[str, Any]) -> bytes:
    """Encode a message as one newline-terminated JSON line."""
    return oj.dumps(message) + b"\n"
