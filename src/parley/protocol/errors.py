"""Protocol error types, error codes and error-kind mapping."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Implementation codes (-32000 to -32099 reserved for implementation)
CONNECTION_CLOSED = -32000
REQUEST_TIMEOUT = -32001
REQUEST_CANCELLED = -32002
HANDSHAKE_FAILED = -32003
UNAUTHORIZED = -32004

# Error code to message mapping
ERROR_MESSAGES = {
    PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
    METHOD_NOT_FOUND: "Method not found",
    INVALID_PARAMS: "Invalid params",
    INTERNAL_ERROR: "Internal error",
    CONNECTION_CLOSED: "Connection closed",
    REQUEST_TIMEOUT: "Request timeout",
    REQUEST_CANCELLED: "Request cancelled",
    HANDSHAKE_FAILED: "Handshake failed",
    UNAUTHORIZED: "Unauthorized",
}


class ErrorKind(Enum):
    """
    Every failure a caller can observe collapses to one of these kinds.
    """

    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    PROTOCOL_ERROR = "protocol_error"
    HANDSHAKE_FAILED = "handshake_failed"
    TRANSPORT_CLOSED = "transport_closed"
    HANDLER_ERROR = "handler_error"

    def __str__(self) -> str:
        return self.value


@dataclass(eq=False)
class MCPError(Exception):
    """
    MCP protocol error.

    Represents errors from the JSON-RPC layer or MCP protocol.
    Can be converted to/from JSON-RPC error objects. A plain MCPError
    is the ProtocolError kind; subclasses name the other kinds.
    """

    code: int
    message: str
    data: Any = None

    kind: ClassVar[ErrorKind] = ErrorKind.PROTOCOL_ERROR

    def __post_init__(self):
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict[str, Any]) -> "MCPError":
        """
        Create from a JSON-RPC error object.

        The returned instance is the subclass matching the error code,
        so the error kind survives the trip across the wire.
        """
        code = error.get("code", INTERNAL_ERROR)
        error_cls = _CODE_CLASSES.get(code, MCPError)
        return error_cls(
            code=code,
            message=error.get("message", "Unknown error"),
            data=error.get("data"),
        )

    @classmethod
    def parse_error(cls, details: str | None = None) -> "MCPError":
        """Create a parse error."""
        return MCPError(
            code=PARSE_ERROR,
            message=ERROR_MESSAGES[PARSE_ERROR],
            data={"details": details} if details else None,
        )

    @classmethod
    def invalid_request(cls, details: str | None = None) -> "MCPError":
        """Create an invalid request error."""
        return MCPError(
            code=INVALID_REQUEST,
            message=details or ERROR_MESSAGES[INVALID_REQUEST],
        )

    @classmethod
    def method_not_found(cls, method: str) -> "MCPError":
        """Create a method not found error."""
        return MCPError(
            code=METHOD_NOT_FOUND,
            message=f"Method not found: {method}",
            data={"method": method},
        )

    @classmethod
    def invalid_params(cls, details: str | None = None) -> "MCPError":
        """Create an invalid params error."""
        return MCPError(
            code=INVALID_PARAMS,
            message=ERROR_MESSAGES[INVALID_PARAMS],
            data={"details": details} if details else None,
        )

    @classmethod
    def internal_error(cls, details: str | None = None) -> "MCPError":
        """Create an internal error."""
        return MCPError(
            code=INTERNAL_ERROR,
            message=details or ERROR_MESSAGES[INTERNAL_ERROR],
        )

    @classmethod
    def unauthorized(cls, details: str | None = None) -> "MCPError":
        """Create an unauthorized error."""
        return MCPError(
            code=UNAUTHORIZED,
            message=details or ERROR_MESSAGES[UNAUTHORIZED],
        )

    def __str__(self) -> str:
        base = f"{type(self).__name__}({self.code}): {self.message}"
        if self.data:
            base += f" {self.data}"
        return base

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code}, "
            f"message={self.message!r}, data={self.data})"
        )


class RequestTimeoutError(MCPError):
    """A request received no reply within its timeout."""

    kind = ErrorKind.TIMEOUT

    @classmethod
    def after(cls, timeout_seconds: float, message: str | None = None) -> "RequestTimeoutError":
        return cls(
            code=REQUEST_TIMEOUT,
            message=message or f"Request timed out after {timeout_seconds}s",
            data={"timeout": timeout_seconds},
        )


class RequestCancelledError(MCPError):
    """A request was cancelled before it settled."""

    kind = ErrorKind.CANCELLED

    @classmethod
    def because(cls, reason: str | None = None) -> "RequestCancelledError":
        return cls(
            code=REQUEST_CANCELLED,
            message=reason or ERROR_MESSAGES[REQUEST_CANCELLED],
        )


class HandshakeFailedError(MCPError):
    """Protocol version or capability negotiation did not succeed."""

    kind = ErrorKind.HANDSHAKE_FAILED

    @classmethod
    def because(cls, reason: str, data: Any = None) -> "HandshakeFailedError":
        return cls(code=HANDSHAKE_FAILED, message=reason, data=data)


class TransportClosedError(MCPError):
    """The underlying transport closed or failed; the session is over."""

    kind = ErrorKind.TRANSPORT_CLOSED

    @classmethod
    def because(cls, reason: str | None = None) -> "TransportClosedError":
        return cls(
            code=CONNECTION_CLOSED,
            message=reason or ERROR_MESSAGES[CONNECTION_CLOSED],
        )


class HandlerError(MCPError):
    """
    An exception raised inside a registered request handler.

    Sent to the peer as an internal error; the original exception is
    kept in ``cause`` for local reporting.
    """

    kind = ErrorKind.HANDLER_ERROR

    cause: BaseException | None = None
    method: str | None = None

    @classmethod
    def wrap(cls, method: str, cause: BaseException) -> "HandlerError":
        error = cls(
            code=INTERNAL_ERROR,
            message=str(cause) or ERROR_MESSAGES[INTERNAL_ERROR],
        )
        error.cause = cause
        error.method = method
        return error


_CODE_CLASSES: dict[int, type[MCPError]] = {
    REQUEST_TIMEOUT: RequestTimeoutError,
    REQUEST_CANCELLED: RequestCancelledError,
    CONNECTION_CLOSED: TransportClosedError,
    HANDSHAKE_FAILED: HandshakeFailedError,
}


def error_kind(error: BaseException) -> ErrorKind:
    """
    Classify any exception raised by a session operation.

    Args:
        error: The exception to classify.

    Returns:
        The matching ErrorKind. Task cancellation counts as CANCELLED
        and anything that is not an MCPError as HANDLER_ERROR.
    """
    if isinstance(error, MCPError):
        return error.kind
    if isinstance(error, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    return ErrorKind.HANDLER_ERROR
