"""orjson helpers shared by transports and config loading."""

from typing import Any

import orjson


def loads(data: bytes | bytearray | str) -> Any:
    """Decode JSON text or bytes."""
    return orjson.loads(data)


def dumps(obj: Any) -> bytes:
    """Encode to compact UTF-8 JSON bytes."""
    return orjson.dumps(obj)


def dumps_str(obj: Any) -> str:
    """Encode to a JSON string."""
    return orjson.dumps(obj).decode("utf-8")


JSONDecodeError = orjson.JSONDecodeError
