"""Responder side of an MCP session."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from parley.auth import TokenVerifier
from parley.capabilities.client import ClientCapabilities
from parley.capabilities.negotiation import (
    Implementation,
    InitializeParams,
    InitializeResult,
    NegotiationResult,
    SUPPORTED_PROTOCOL_VERSIONS,
    negotiate_protocol_version,
)
from parley.capabilities.server import ServerCapabilities
from parley.config import SessionOptions
from parley.protocol.errors import MCPError
from parley.protocol.handlers import HandlerRegistry, RequestContext, RequestHandler
from parley.protocol.messages import JSONRPCNotification, JSONRPCRequest
from parley.protocol.state import ProtocolState
from parley.protocol.session import ProtocolSession

logger = logging.getLogger(__name__)

INITIALIZED_NOTIFICATION = "notifications/initialized"

_PRE_INIT_NOTIFICATIONS = frozenset({"notifications/cancelled", "notifications/progress"})
_PRE_INIT_INCOMING_NOTIFICATIONS = _PRE_INIT_NOTIFICATIONS | {INITIALIZED_NOTIFICATION}


class ServerSession(ProtocolSession):
    """
    MCP server: answers the handshake and serves client requests.

    Until the client sends notifications/initialized, only initialize
    and ping are accepted; everything else is refused with -32600.
    """

    def __init__(
        self,
        server_info: Implementation,
        capabilities: ServerCapabilities | None = None,
        instructions: str | None = None,
        supported_versions: Sequence[str] = SUPPORTED_PROTOCOL_VERSIONS,
        handlers: HandlerRegistry | None = None,
        options: SessionOptions | None = None,
        token_verifier: TokenVerifier | None = None,
        required_scopes: tuple[str, ...] = (),
    ):
        """
        Args:
            server_info: Name and version sent to the client.
            capabilities: Capabilities this server declares.
            instructions: Optional free-text usage instructions.
            supported_versions: Protocol versions, most preferred first.
            handlers: Handlers for client requests/notifications.
            options: Session tunables.
            token_verifier: If set, every request needs a valid bearer token.
            required_scopes: Scopes every token must carry.
        """
        if not supported_versions:
            raise ValueError("supported_versions must not be empty")
        super().__init__(
            handlers=handlers,
            options=options,
            token_verifier=token_verifier,
            required_scopes=required_scopes,
        )
        self.server_info = server_info
        self._capabilities = capabilities or ServerCapabilities()
        self.instructions = instructions
        self.supported_versions = tuple(supported_versions)
        self._client_params: InitializeParams | None = None
        self._negotiation: NegotiationResult | None = None

        self.on_initialized: Callable[[NegotiationResult], None] | None = None

    @property
    def capabilities(self) -> ServerCapabilities:
        return self._capabilities

    @property
    def negotiation(self) -> NegotiationResult | None:
        """Handshake outcome, once the client has sent initialized."""
        return self._negotiation

    @property
    def client_capabilities(self) -> ClientCapabilities | None:
        return self._client_params.capabilities if self._client_params else None

    @property
    def client_info(self) -> Implementation | None:
        return self._client_params.client_info if self._client_params else None

    def register_capabilities(self, capabilities: ServerCapabilities) -> None:
        """
        Add capabilities before the handshake starts.

        Raises:
            RuntimeError: If a client has already sent initialize.
        """
        if self.state is not ProtocolState.UNINITIALIZED:
            raise RuntimeError("Cannot register capabilities after the handshake has started")
        self._capabilities = self._capabilities.merge(capabilities)

    def _check_incoming_request(self, request: JSONRPCRequest) -> MCPError | None:
        if request.method == "initialize":
            if self.state is not ProtocolState.UNINITIALIZED:
                return MCPError.invalid_request("Session is already initialized")
            params = InitializeParams.parse(request.params)
            if isinstance(params, MCPError):
                return params
            # Claim the handshake now so a second initialize is refused
            self._client_params = params
            self.state_machine.transition(ProtocolState.INITIALIZING)
            return None

        if request.method == "ping" or self.state_machine.is_ready:
            return None
        return MCPError.invalid_request(
            f"Received {request.method} before initialization was complete"
        )

    def _check_incoming_notification(self, notification: JSONRPCNotification) -> str | None:
        if notification.method in _PRE_INIT_INCOMING_NOTIFICATIONS or self.state_machine.is_ready:
            return None
        return "received before initialization was complete"

    def _resolve_request_handler(self, method: str) -> RequestHandler | None:
        # The handshake is never delegated to the registry
        if method == "initialize":
            return self._handle_initialize
        return super()._resolve_request_handler(method)

    async def _handle_initialize(
        self,
        params: dict[str, Any],
        context: RequestContext,
    ) -> dict[str, Any]:
        client = self._client_params
        assert client is not None

        version = negotiate_protocol_version(client.offered_versions, self.supported_versions)
        if version is None:
            # Counter-offer our preferred version; the client decides whether to hang up
            version = self.supported_versions[0]
            logger.warning(
                f"No common protocol version with client offer {list(client.offered_versions)}; "
                f"answering with {version}"
            )

        self._negotiation = NegotiationResult(
            protocol_version=version,
            client_capabilities=client.capabilities,
            server_capabilities=self._capabilities,
            client_info=client.client_info,
            server_info=self.server_info,
            instructions=self.instructions,
            offered_versions=client.offered_versions,
        )
        if self.transport is not None:
            self.transport.set_protocol_version(version)

        logger.info(
            f"Client {client.client_info.name} v{client.client_info.version} "
            f"initializing with protocol {version}"
        )
        return InitializeResult(
            protocol_version=version,
            capabilities=self._capabilities,
            server_info=self.server_info,
            instructions=self.instructions,
        ).to_dict()

    def _handle_notification(self, notification: JSONRPCNotification) -> None:
        if notification.method == INITIALIZED_NOTIFICATION:
            self._on_client_initialized()
        super()._handle_notification(notification)

    def _on_client_initialized(self) -> None:
        if self.state is not ProtocolState.INITIALIZING or self._negotiation is None:
            logger.warning(f"Ignoring {INITIALIZED_NOTIFICATION} in state {self.state}")
            return
        self.state_machine.transition(ProtocolState.INITIALIZED)
        logger.info(f"Handshake complete: {self._negotiation}")
        if self.on_initialized is not None:
            try:
                self.on_initialized(self._negotiation)
            except Exception as e:
                logger.exception("on_initialized callback failed")
                self._report_error(e)

    def _assert_can_send_request(self, method: str) -> None:
        if method == "ping":
            return
        if not self.state_machine.is_ready:
            raise MCPError.invalid_request(f"Cannot send {method} before initialization completes")
        if self.options.enforce_strict_capabilities and self._client_params is not None:
            missing = self._client_params.capabilities.missing_for_request(method)
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
