"""Session options and MCP server configuration loading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from parley.lib import oj

if TYPE_CHECKING:
    from parley.transport.base import Transport

logger = logging.getLogger(__name__)

# Config file locations
MCP_CONFIG_FILENAME = "mcp.json"
GLOBAL_MCP_CONFIG = Path.home() / ".parley" / MCP_CONFIG_FILENAME
LOCAL_MCP_CONFIG_DIR = ".parley"

DEFAULT_REQUEST_TIMEOUT = 60.0


@dataclass
class SessionOptions:
    """Tunables for a ProtocolSession."""

    request_timeout: float | None = DEFAULT_REQUEST_TIMEOUT
    """Default per-request timeout in seconds; None disables it."""

    max_pending_requests: int = 100
    """Outgoing requests allowed in flight at once."""

    enforce_strict_capabilities: bool = False
    """Refuse to send requests the peer did not declare a capability for."""

    debounced_notification_methods: tuple[str, ...] = ()
    """Parameterless notifications coalesced into one send per loop tick."""

    def __post_init__(self) -> None:
        """Validate options."""
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive or None")
        if self.max_pending_requests < 1:
            raise ValueError("max_pending_requests must be at least 1")
        self.debounced_notification_methods = tuple(self.debounced_notification_methods)


@dataclass
class MCPServerConfig:
    """
    Configuration for a single MCP server.

    Either ``url`` (Streamable HTTP) or ``command`` (stdio) is set.
    """

    name: str
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "MCPServerConfig":
        """
        Create from a config entry.

        Raises:
            ValueError: If the entry names neither a url nor a command.
        """
        url = data.get("url") or None
        command = data.get("command") or None
        if url is None and command is None:
            raise ValueError(f"Server {name!r} needs either 'url' or 'command'")
        return cls(
            name=name,
            url=url,
            headers=dict(data.get("headers") or {}),
            command=command,
            args=[str(arg) for arg in data.get("args") or []],
            env=dict(data.get("env") or {}),
        )

    @property
    def is_stdio(self) -> bool:
        return self.url is None

    def create_transport(self) -> "Transport":
        """Build the transport this entry describes."""
        # Transports import httpx; keep config importable without them loaded
        from parley.transport.http import StreamableHTTPTransport
        from parley.transport.stdio import StdioClientTransport, StdioServerParameters
        from parley.transport.types import TransportConfig

        if self.url is not None:
            return StreamableHTTPTransport(TransportConfig(url=self.url, headers=self.headers))
        assert self.command is not None
        return StdioClientTransport(
            StdioServerParameters(command=self.command, args=self.args, env=self.env or None)
        )


def _read_servers(path: Path) -> dict[str, MCPServerConfig]:
    configs: dict[str, MCPServerConfig] = {}
    try:
        data = oj.loads(path.read_bytes())
    except (OSError, oj.JSONDecodeError) as e:
        logger.warning(f"Skipping unreadable MCP config {path}: {e}")
        return configs

    servers = data.get("mcpServers", {}) if isinstance(data, dict) else {}
    if not isinstance(servers, dict):
        logger.warning(f"Ignoring malformed mcpServers in {path}")
        return configs

    for name, server_data in servers.items():
        if not isinstance(server_data, dict):
            logger.warning(f"Ignoring MCP server {name!r} in {path}: not an object")
            continue
        try:
            configs[name] = MCPServerConfig.from_dict(name, server_data)
        except ValueError as e:
            logger.warning(f"Ignoring MCP server in {path}: {e}")
    return configs


def load_mcp_config(
    working_dir: Path | None = None,
    global_config: Path | None = None,
) -> dict[str, MCPServerConfig]:
    """Load MCP server configs from global and local config files.

    Global config (~/.parley/mcp.json) is loaded first.
    Local config ({working_dir}/.parley/mcp.json) overrides global.

    Returns:
        Dict mapping server name to config.
    """
    configs: dict[str, MCPServerConfig] = {}

    global_path = global_config or GLOBAL_MCP_CONFIG
    if global_path.exists():
        configs.update(_read_servers(global_path))

    if working_dir:
        local_path = working_dir / LOCAL_MCP_CONFIG_DIR / MCP_CONFIG_FILENAME
        if local_path.exists():
            configs.update(_read_servers(local_path))

    return configs
