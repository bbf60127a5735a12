"""Transport layer types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any
from urllib.parse import urlparse


class TransportEventType(Enum):
    """Types of transport events for observability."""

    STARTING = auto()
    STARTED = auto()
    CLOSING = auto()
    CLOSED = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    ERROR = auto()
    SESSION_ESTABLISHED = auto()
    SSE_OPENED = auto()
    SSE_CLOSED = auto()


@dataclass
class TransportEvent:
    """Event emitted by a transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: BaseException | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class MessageExtra:
    """
    Out-of-band information a transport attaches to a received message.

    The session consults ``auth_token`` (or an already verified
    ``auth_info``) before dispatching an inbound request.
    """

    auth_token: str | None = None
    """Bearer token presented by the peer, if any."""

    auth_info: Any = None
    """AuthInfo verified by the transport itself, if it does its own checks."""

    session_id: str | None = None
    """Transport-level session identifier."""

    request_info: dict[str, Any] | None = None
    """Transport request details (e.g. HTTP headers)."""


_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1", "[::1]")


@dataclass
class TransportConfig:
    """Configuration for the Streamable HTTP transport."""

    url: str
    """Endpoint URL of the MCP server (must be https:// for remote servers)."""

    timeout: float = 30.0
    """Read/write timeout in seconds for one HTTP exchange."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    headers: dict[str, str] = field(default_factory=dict)
    """Additional HTTP headers to include in requests."""

    max_concurrent_requests: int = 10
    """Maximum number of concurrent in-flight HTTP requests."""

    verify_ssl: bool = True
    """Whether to verify SSL certificates."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.url:
            raise ValueError("url is required")
        scheme = urlparse(self.url).scheme
        if scheme not in ("http", "https"):
            raise ValueError(f"Unsupported URL scheme: {scheme!r}")
        # Plain http:// only for local development servers
        if scheme == "http" and not self.is_localhost():
            raise ValueError("Remote connections must use https://")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")

    def is_localhost(self) -> bool:
        """Check if URL points to localhost."""
        host = urlparse(self.url).hostname or ""
        return host in _LOCAL_HOSTS
