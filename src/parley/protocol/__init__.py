"""
MCP Protocol Core.

JSON-RPC 2.0 message parsing, the error taxonomy, the handshake state
machine and the session engine that correlates requests with replies.
"""

from parley.protocol.errors import (
    MCPError,
    ErrorKind,
    error_kind,
    RequestTimeoutError,
    RequestCancelledError,
    HandshakeFailedError,
    TransportClosedError,
    HandlerError,
    PARSE_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
    CONNECTION_CLOSED,
    REQUEST_TIMEOUT,
    REQUEST_CANCELLED,
    HANDSHAKE_FAILED,
    UNAUTHORIZED,
)
from parley.protocol.messages import (
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
    JSONRPCError,
    JSONRPCErrorResponse,
    InvalidMessage,
    MessageKind,
    RequestId,
    parse_message,
)
from parley.protocol.state import (
    ProtocolState,
    ProtocolStateMachine,
    InvalidStateTransition,
)
from parley.protocol.pending import PendingRequest, PendingRequestTable
from parley.protocol.handlers import (
    NO_TIMEOUT,
    HandlerRegistry,
    RequestContext,
    RequestOptions,
)
from parley.protocol.session import OutgoingRequest, ProtocolSession
from parley.protocol.client import ClientSession
from parley.protocol.server import ServerSession

__all__ = [
    # Errors
    "MCPError",
    "ErrorKind",
    "error_kind",
    "RequestTimeoutError",
    "RequestCancelledError",
    "HandshakeFailedError",
    "TransportClosedError",
    "HandlerError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "CONNECTION_CLOSED",
    "REQUEST_TIMEOUT",
    "REQUEST_CANCELLED",
    "HANDSHAKE_FAILED",
    "UNAUTHORIZED",
    # Messages
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCNotification",
    "JSONRPCError",
    "JSONRPCErrorResponse",
    "InvalidMessage",
    "MessageKind",
    "RequestId",
    "parse_message",
    # State
    "ProtocolState",
    "ProtocolStateMachine",
    "InvalidStateTransition",
    # Engine
    "PendingRequest",
    "PendingRequestTable",
    "HandlerRegistry",
    "RequestContext",
    "RequestOptions",
    "NO_TIMEOUT",
    "OutgoingRequest",
    "ProtocolSession",
    "ClientSession",
    "ServerSession",
]
