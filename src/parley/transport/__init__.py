"""
MCP Transport Layer.

Duplex channels that carry decoded JSON-RPC messages between peers:
in-memory pairs, stdio pipes and Streamable HTTP.
"""

from parley.transport.types import (
    MessageExtra,
    TransportConfig,
    TransportEvent,
    TransportEventType,
)
from parley.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
    FramingError,
)
from parley.transport.framing import ReadBuffer, serialize_message
from parley.transport.memory import InMemoryTransport
from parley.transport.stdio import (
    StdioClientTransport,
    StdioServerTransport,
    StdioServerParameters,
    get_default_environment,
)
from parley.transport.http import StreamableHTTPTransport

__all__ = [
    # Types
    "MessageExtra",
    "TransportConfig",
    "TransportEvent",
    "TransportEventType",
    # Base
    "Transport",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "SessionError",
    "FramingError",
    # Framing
    "ReadBuffer",
    "serialize_message",
    # Implementations
    "InMemoryTransport",
    "StdioClientTransport",
    "StdioServerTransport",
    "StdioServerParameters",
    "get_default_environment",
    "StreamableHTTPTransport",
]
