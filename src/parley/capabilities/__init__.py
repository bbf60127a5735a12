"""
MCP Capability Negotiation.

Capability declarations for both peers and the version negotiation
used during the initialize handshake.
"""

from parley.capabilities.client import (
    ClientCapabilities,
    SamplingCapability,
    RootsCapability,
    ElicitationCapability,
    DEFAULT_CLIENT_CAPABILITIES,
)
from parley.capabilities.server import (
    ServerCapabilities,
    ServerToolsCapability,
    ServerResourcesCapability,
    ServerPromptsCapability,
)
from parley.capabilities.merge import merge_capability_dicts
from parley.capabilities.negotiation import (
    Implementation,
    InitializeParams,
    InitializeResult,
    NegotiationResult,
    negotiate_protocol_version,
    LATEST_PROTOCOL_VERSION,
    DEFAULT_NEGOTIATED_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
)

__all__ = [
    # Client capabilities
    "ClientCapabilities",
    "SamplingCapability",
    "RootsCapability",
    "ElicitationCapability",
    "DEFAULT_CLIENT_CAPABILITIES",
    # Server capabilities
    "ServerCapabilities",
    "ServerToolsCapability",
    "ServerResourcesCapability",
    "ServerPromptsCapability",
    "merge_capability_dicts",
    # Negotiation
    "Implementation",
    "InitializeParams",
    "InitializeResult",
    "NegotiationResult",
    "negotiate_protocol_version",
    "LATEST_PROTOCOL_VERSION",
    "DEFAULT_NEGOTIATED_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
]
