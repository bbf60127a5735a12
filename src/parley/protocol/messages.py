"""JSON-RPC 2.0 message types for MCP protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, ClassVar, Union

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int]


class MessageKind(Enum):
    """Tag assigned to every parsed message."""

    REQUEST = auto()
    NOTIFICATION = auto()
    RESPONSE = auto()
    ERROR = auto()
    INVALID = auto()


@dataclass
class JSONRPCRequest:
    """
    JSON-RPC 2.0 request message.

    Requests expect a response from the recipient.
    """

    id: RequestId
    method: str
    params: dict[str, Any] | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    kind: ClassVar[MessageKind] = MessageKind.REQUEST

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
        }
        if self.params is not None:
            msg["params"] = self.params
        return msg

    @property
    def meta(self) -> dict[str, Any]:
        """The ``_meta`` object from params, or an empty dict."""
        if self.params and isinstance(self.params.get("_meta"), dict):
            return self.params["_meta"]
        return {}

    def __str__(self) -> str:
        return f"Request({self.method}, id={self.id})"


@dataclass
class JSONRPCNotification:
    """
    JSON-RPC 2.0 notification message.

    Notifications do not expect a response (no id field).
    """

    method: str
    params: dict[str, Any] | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    kind: ClassVar[MessageKind] = MessageKind.NOTIFICATION

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
        }
        if self.params is not None:
            msg["params"] = self.params
        return msg

    def __str__(self) -> str:
        return f"Notification({self.method})"


@dataclass
class JSONRPCResponse:
    """JSON-RPC 2.0 success response message."""

    id: RequestId
    result: Any = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    kind: ClassVar[MessageKind] = MessageKind.RESPONSE

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "result": self.result,
        }

    def __str__(self) -> str:
        return f"Response(id={self.id}, success)"


@dataclass
class JSONRPCError:
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCError":
        """Create from JSON dict."""
        return cls(
            code=data["code"],
            message=data["message"],
            data=data.get("data"),
        )


@dataclass
class JSONRPCErrorResponse:
    """
    JSON-RPC 2.0 error response message.

    The id is None only when the peer could not determine which
    request failed (e.g. it could not parse it).
    """

    id: RequestId | None
    error: JSONRPCError
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    kind: ClassVar[MessageKind] = MessageKind.ERROR

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "error": self.error.to_dict(),
        }

    @classmethod
    def create(
        cls,
        id: RequestId | None,
        code: int,
        message: str,
        data: Any = None,
    ) -> "JSONRPCErrorResponse":
        """Create an error response."""
        return cls(id=id, error=JSONRPCError(code=code, message=message, data=data))

    def __str__(self) -> str:
        return f"ErrorResponse(id={self.id}, error={self.error.code})"


@dataclass
class InvalidMessage:
    """
    A payload that is not a well-formed JSON-RPC 2.0 message.

    ``id`` holds the payload's id when one could be recovered, so the
    receiver can still answer with an error response.
    """

    reason: str
    id: RequestId | None = None
    raw: Any = None

    kind: ClassVar[MessageKind] = MessageKind.INVALID

    def __str__(self) -> str:
        return f"InvalidMessage({self.reason}, id={self.id})"


JSONRPCMessage = Union[
    JSONRPCRequest,
    JSONRPCNotification,
    JSONRPCResponse,
    JSONRPCErrorResponse,
]

ParsedMessage = Union[
    JSONRPCRequest,
    JSONRPCNotification,
    JSONRPCResponse,
    JSONRPCErrorResponse,
    InvalidMessage,
]


def is_valid_request_id(value: Any) -> bool:
    """Check a value is a usable request id (non-empty string or integer)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value != ""


def parse_message(data: Any) -> ParsedMessage:
    """
    Parse a decoded JSON value into exactly one tagged message shape.

    This is the only place the shape of a message is inferred from the
    keys it carries. Failures are returned as InvalidMessage, never
    raised.

    Args:
        data: A JSON-decoded value received from the transport.

    Returns:
        The parsed message. Switch on its ``kind`` (or class) to handle it.
    """
    if not isinstance(data, dict):
        return InvalidMessage("Message must be a JSON object", raw=data)

    raw_id = data.get("id")
    recovered_id = raw_id if is_valid_request_id(raw_id) else None

    if data.get("jsonrpc") != JSONRPC_VERSION:
        return InvalidMessage("Invalid JSON-RPC version", id=recovered_id, raw=data)

    has_id = "id" in data
    has_method = "method" in data
    has_result = "result" in data
    has_error = "error" in data

    params = data.get("params")
    if has_method:
        method = data["method"]
        if not isinstance(method, str) or not method:
            return InvalidMessage("Method must be a non-empty string", id=recovered_id, raw=data)
        if params is not None and not isinstance(params, dict):
            return InvalidMessage("Params must be an object", id=recovered_id, raw=data)
        if has_result or has_error:
            return InvalidMessage("Message mixes method with result/error", id=recovered_id, raw=data)

        if not has_id:
            return JSONRPCNotification(method=method, params=params)
        if recovered_id is None:
            return InvalidMessage("Request id must be a non-empty string or integer", raw=data)
        return JSONRPCRequest(id=recovered_id, method=method, params=params)

    if has_result and has_error:
        return InvalidMessage("Response carries both result and error", id=recovered_id, raw=data)

    if has_result:
        if recovered_id is None:
            return InvalidMessage("Response id must be a non-empty string or integer", raw=data)
        return JSONRPCResponse(id=recovered_id, result=data["result"])

    if has_error:
        error = data["error"]
        if (
            not isinstance(error, dict)
            or isinstance(error.get("code"), bool)
            or not isinstance(error.get("code"), int)
            or not isinstance(error.get("message"), str)
        ):
            return InvalidMessage("Malformed error object", id=recovered_id, raw=data)
        if raw_id is not None and recovered_id is None:
            return InvalidMessage("Error id must be a string, integer or null", raw=data)
        return JSONRPCErrorResponse(id=recovered_id, error=JSONRPCError.from_dict(error))

    return InvalidMessage("Cannot determine message type", id=recovered_id, raw=data)
