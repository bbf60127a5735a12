"""
parley: an MCP (Model Context Protocol) session engine.

Submodules:
- protocol: JSON-RPC 2.0 messages, errors, and the session engine
- capabilities: Capability declarations and version negotiation
- transport: In-memory, stdio and Streamable HTTP transports
- utilities: Progress, cancellation and ping helpers
- auth: Bearer-token verification for inbound requests
- config: Session options and server configuration files
"""

# Protocol layer
from parley.protocol import (
    ClientSession,
    ServerSession,
    ProtocolSession,
    OutgoingRequest,
    HandlerRegistry,
    RequestContext,
    RequestOptions,
    NO_TIMEOUT,
    MCPError,
    ErrorKind,
    error_kind,
    RequestTimeoutError,
    RequestCancelledError,
    HandshakeFailedError,
    TransportClosedError,
    HandlerError,
    ProtocolState,
)

# Capabilities
from parley.capabilities import (
    ClientCapabilities,
    ServerCapabilities,
    Implementation,
    NegotiationResult,
    negotiate_protocol_version,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
)

# Transport layer
from parley.transport import (
    Transport,
    TransportError,
    MessageExtra,
    InMemoryTransport,
    StdioClientTransport,
    StdioServerTransport,
    StdioServerParameters,
    StreamableHTTPTransport,
    TransportConfig,
)

# Utilities
from parley.utilities import (
    CancellationToken,
    ProgressInfo,
    ping_peer,
)

# Auth and configuration
from parley.auth import AuthInfo, TokenVerifier, InvalidTokenError
from parley.config import SessionOptions, MCPServerConfig, load_mcp_config

__all__ = [
    # Protocol
    "ClientSession",
    "ServerSession",
    "ProtocolSession",
    "OutgoingRequest",
    "HandlerRegistry",
    "RequestContext",
    "RequestOptions",
    "NO_TIMEOUT",
    "MCPError",
    "ErrorKind",
    "error_kind",
    "RequestTimeoutError",
    "RequestCancelledError",
    "HandshakeFailedError",
    "TransportClosedError",
    "HandlerError",
    "ProtocolState",
    # Capabilities
    "ClientCapabilities",
    "ServerCapabilities",
    "Implementation",
    "NegotiationResult",
    "negotiate_protocol_version",
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    # Transport
    "Transport",
    "TransportError",
    "MessageExtra",
    "InMemoryTransport",
    "StdioClientTransport",
    "StdioServerTransport",
    "StdioServerParameters",
    "StreamableHTTPTransport",
    "TransportConfig",
    # Utilities
    "CancellationToken",
    "ProgressInfo",
    "ping_peer",
    # Auth / config
    "AuthInfo",
    "TokenVerifier",
    "InvalidTokenError",
    "SessionOptions",
    "MCPServerConfig",
    "load_mcp_config",
]

__version__ = "0.1.0"
