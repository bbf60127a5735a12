"""Initiator side of an MCP session."""

from __future__ import annotations

import logging
from typing import Sequence

from parley.auth import TokenVerifier
from parley.capabilities.client import ClientCapabilities, DEFAULT_CLIENT_CAPABILITIES
from parley.capabilities.negotiation import (
    Implementation,
    InitializeParams,
    InitializeResult,
    NegotiationResult,
    SUPPORTED_PROTOCOL_VERSIONS,
)
from parley.capabilities.server import ServerCapabilities
from parley.config import SessionOptions
from parley.protocol.errors import HandshakeFailedError, MCPError
from parley.protocol.handlers import HandlerRegistry, RequestOptions
from parley.protocol.messages import JSONRPCNotification, JSONRPCRequest
from parley.protocol.state import ProtocolState
from parley.protocol.session import ProtocolSession

logger = logging.getLogger(__name__)

INITIALIZED_NOTIFICATION = "notifications/initialized"

# Allowed before the handshake completes
_PRE_INIT_REQUESTS = frozenset({"initialize", "ping"})
_PRE_INIT_NOTIFICATIONS = frozenset(
    {INITIALIZED_NOTIFICATION, "notifications/cancelled", "notifications/progress"}
)

DEFAULT_CLIENT_INFO = Implementation(name="parley", version="0.1.0")


class ClientSession(ProtocolSession):
    """
    MCP client: starts the handshake and then talks to a server.

    Usage:
        session = ClientSession(client_info=Implementation("app", "1.0"))
        await session.connect(transport)
        negotiation = await session.initialize()
        tools = await session.request("tools/list")
    """

    def __init__(
        self,
        client_info: Implementation = DEFAULT_CLIENT_INFO,
        capabilities: ClientCapabilities = DEFAULT_CLIENT_CAPABILITIES,
        offered_versions: Sequence[str] = SUPPORTED_PROTOCOL_VERSIONS,
        handlers: HandlerRegistry | None = None,
        options: SessionOptions | None = None,
        token_verifier: TokenVerifier | None = None,
    ):
        """
        Args:
            client_info: Name and version sent to the server.
            capabilities: Capabilities this client declares.
            offered_versions: Protocol versions offered, most preferred first.
            handlers: Handlers for server-initiated requests/notifications.
            options: Session tunables.
            token_verifier: Optional verifier for server-initiated requests.
        """
        if not offered_versions:
            raise ValueError("offered_versions must not be empty")
        super().__init__(handlers=handlers, options=options, token_verifier=token_verifier)
        self.client_info = client_info
        self._capabilities = capabilities
        self.offered_versions = tuple(offered_versions)
        self._negotiation: NegotiationResult | None = None

    @property
    def capabilities(self) -> ClientCapabilities:
        return self._capabilities

    @property
    def negotiation(self) -> NegotiationResult | None:
        """Handshake outcome, once initialize() has succeeded."""
        return self._negotiation

    @property
    def server_capabilities(self) -> ServerCapabilities | None:
        return self._negotiation.server_capabilities if self._negotiation else None

    @property
    def server_info(self) -> Implementation | None:
        return self._negotiation.server_info if self._negotiation else None

    def register_capabilities(self, capabilities: ClientCapabilities) -> None:
        """
        Add capabilities before the handshake starts.

        Raises:
            RuntimeError: If initialize() has already been called.
        """
        if self.state is not ProtocolState.UNINITIALIZED:
            raise RuntimeError("Cannot register capabilities after the handshake has started")
        self._capabilities = self._capabilities.merge(capabilities)

    async def initialize(self, timeout: float | None = None) -> NegotiationResult:
        """
        Perform the initialize handshake.

        Sends initialize, validates the server's answer, then sends
        notifications/initialized. On any failure the session is closed.

        Args:
            timeout: Timeout for the initialize request.

        Returns:
            The negotiated result.

        Raises:
            HandshakeFailedError: If the server picked a version we did
                not offer or sent a malformed result.
            MCPError: If the initialize request itself failed.
        """
        if self.state is not ProtocolState.UNINITIALIZED:
            raise MCPError.invalid_request(f"Cannot initialize in state {self.state}")

        self.state_machine.transition(ProtocolState.INITIALIZING)
        try:
            return await self._perform_initialize(timeout)
        except BaseException:
            await self.close()
            raise

    async def _perform_initialize(self, timeout: float | None) -> NegotiationResult:
        params = InitializeParams(
            offered_versions=self.offered_versions,
            capabilities=self._capabilities,
            client_info=self.client_info,
        )
        logger.debug(f"Starting handshake, offering {list(self.offered_versions)}")

        raw = await self.request("initialize", params.to_dict(), RequestOptions(timeout=timeout))

        result = InitializeResult.parse(raw)
        if isinstance(result, MCPError):
            raise HandshakeFailedError.because(f"Invalid initialize result: {result.message}")

        if result.protocol_version not in self.offered_versions:
            logger.warning(f"Server chose unsupported protocol version {result.protocol_version}")
            raise HandshakeFailedError.because(
                f"Server's protocol version is not supported: {result.protocol_version}",
                data={
                    "supported": list(self.offered_versions),
                    "requested": result.protocol_version,
                },
            )

        self._negotiation = NegotiationResult(
            protocol_version=result.protocol_version,
            client_capabilities=self._capabilities,
            server_capabilities=result.capabilities,
            client_info=self.client_info,
            server_info=result.server_info,
            instructions=result.instructions,
            offered_versions=self.offered_versions,
        )
        if self.transport is not None:
            self.transport.set_protocol_version(result.protocol_version)

        # Ready before the server can react to initialized
        self.state_machine.transition(ProtocolState.INITIALIZED)
        await self.notify(INITIALIZED_NOTIFICATION)

        logger.info(
            f"Connected to server: {result.server_info.name} v{result.server_info.version} "
            f"(protocol {result.protocol_version})"
        )
        return self._negotiation

    def _check_incoming_request(self, request: JSONRPCRequest) -> MCPError | None:
        if request.method == "ping" or self.state_machine.is_ready:
            return None
        return MCPError.invalid_request(
            f"Received {request.method} before initialization was complete"
        )

    def _check_incoming_notification(self, notification: JSONRPCNotification) -> str | None:
        if notification.method in _PRE_INIT_NOTIFICATIONS or self.state_machine.is_ready:
            return None
        return "received before initialization was complete"

    def _assert_can_send_request(self, method: str) -> None:
        if method == "initialize":
            if self.state is not ProtocolState.INITIALIZING:
                raise MCPError.invalid_request("initialize is sent by initialize() only")
            return
        if method in _PRE_INIT_REQUESTS:
            return
        if not self.state_machine.is_ready:
            raise MCPError.invalid_request(f"Cannot send {method} before initialization completes")
        if self.options.enforce_strict_capabilities and self._negotiation is not None:
            missing = self._negotiation.server_capabilities.missing_for_request(method)
            if missing is not None:
                raise MCPError.invalid_request(missing)

    def _assert_can_send_notification(self, method: str) -> None:
        if method not in _PRE_INIT_NOTIFICATIONS and not self.state_machine.is_ready:
            raise MCPError.invalid_request(f"Cannot send {method} before initialization completes")
        missing = self._capabilities.missing_for_notification(method)
        if missing is not None:
            raise MCPError.invalid_request(missing)

    def _assert_request_handler_capability(self, method: str) -> None:
        missing = self._capabilities.missing_for_request(method)
        if missing is not None:
            raise MCPError.invalid_request(missing)
