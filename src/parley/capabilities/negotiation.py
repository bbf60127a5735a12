"""Protocol version negotiation and initialize payloads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from parley.capabilities.client import ClientCapabilities
from parley.capabilities.server import ServerCapabilities
from parley.protocol.errors import MCPError

logger = logging.getLogger(__name__)

# Protocol version constants, most preferred first
LATEST_PROTOCOL_VERSION = "2025-06-18"
DEFAULT_NEGOTIATED_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = [
    LATEST_PROTOCOL_VERSION,
    "2025-03-26",
    "2024-11-05",
    "2024-10-07",
]


def negotiate_protocol_version(
    offered: Sequence[str],
    supported: Sequence[str],
) -> str | None:
    """
    Pick the protocol version for a session.

    The responder's preference order wins: the first entry of
    ``supported`` that also appears in ``offered`` is chosen.

    Args:
        offered: Versions the initiator is willing to speak.
        supported: Versions the responder supports, most preferred first.

    Returns:
        The negotiated version, or None if the lists do not intersect.
    """
    offered_set = set(offered)
    for version in supported:
        if version in offered_set:
            return version
    return None


@dataclass(frozen=True)
class Implementation:
    """Name and version of a client or server implementation."""

    name: str
    version: str
    title: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Implementation":
        data = data or {}
        return cls(
            name=str(data.get("name", "unknown")),
            version=str(data.get("version", "unknown")),
            title=data.get("title"),
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to wire format."""
        info = {"name": self.name, "version": self.version}
        if self.title is not None:
            info["title"] = self.title
        return info


@dataclass(frozen=True)
class InitializeParams:
    """
    Parameters of an initialize request.

    ``offered_versions`` holds every version the initiator offered; on the
    wire ``protocolVersion`` is either one string or a list of strings.
    """

    offered_versions: tuple[str, ...]
    capabilities: ClientCapabilities
    client_info: Implementation

    @property
    def protocol_version(self) -> str:
        """The initiator's preferred version."""
        return self.offered_versions[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": self.capabilities.to_dict(),
            "clientInfo": self.client_info.to_dict(),
        }

    @classmethod
    def parse(cls, params: dict[str, Any] | None) -> "InitializeParams | MCPError":
        """
        Validate initialize params.

        Returns:
            The parsed params, or an invalid-params MCPError describing
            what is wrong. Nothing is raised.
        """
        if not isinstance(params, dict):
            return MCPError.invalid_params("initialize requires params")

        version = params.get("protocolVersion")
        if isinstance(version, str) and version:
            offered: tuple[str, ...] = (version,)
        elif (
            isinstance(version, list)
            and version
            and all(isinstance(v, str) and v for v in version)
        ):
            offered = tuple(version)
        else:
            return MCPError.invalid_params(
                "protocolVersion must be a string or a non-empty list of strings"
            )

        capabilities = params.get("capabilities", {})
        if not isinstance(capabilities, dict):
            return MCPError.invalid_params("capabilities must be an object")

        client_info = params.get("clientInfo")
        if not isinstance(client_info, dict):
            return MCPError.invalid_params("clientInfo must be an object")

        return cls(
            offered_versions=offered,
            capabilities=ClientCapabilities.from_dict(capabilities),
            client_info=Implementation.from_dict(client_info),
        )


@dataclass(frozen=True)
class InitializeResult:
    """Result of an initialize request."""

    protocol_version: str
    capabilities: ServerCapabilities
    server_info: Implementation
    instructions: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "protocolVersion": self.protocol_version,
            "capabilities": self.capabilities.to_dict(),
            "serverInfo": self.server_info.to_dict(),
        }
        if self.instructions is not None:
            result["instructions"] = self.instructions
        return result

    @classmethod
    def parse(cls, result: Any) -> "InitializeResult | MCPError":
        """
        Validate an initialize result received from a server.

        Returns:
            The parsed result, or an MCPError. Nothing is raised.
        """
        if not isinstance(result, dict):
            return MCPError.invalid_params("initialize result must be an object")

        version = result.get("protocolVersion")
        if not isinstance(version, str) or not version:
            return MCPError.invalid_params("initialize result lacks protocolVersion")

        capabilities = result.get("capabilities", {})
        if not isinstance(capabilities, dict):
            return MCPError.invalid_params("capabilities must be an object")

        instructions = result.get("instructions")
        return cls(
            protocol_version=version,
            capabilities=ServerCapabilities.from_dict(capabilities),
            server_info=Implementation.from_dict(result.get("serverInfo")),
            instructions=instructions if isinstance(instructions, str) else None,
        )


@dataclass(frozen=True)
class NegotiationResult:
    """
    Outcome of a completed initialize handshake.

    Read-only: both sides hold the same view for the rest of the session.
    """

    protocol_version: str
    client_capabilities: ClientCapabilities
    server_capabilities: ServerCapabilities
    client_info: Implementation
    server_info: Implementation
    instructions: str | None = None
    offered_versions: tuple[str, ...] = field(default=())

    def __str__(self) -> str:
        features = self.server_capabilities.get_available_features()
        return (
            f"NegotiationResult(version={self.protocol_version}, "
            f"server={self.server_info.name}/{self.server_info.version}, "
            f"features={features})"
        )
