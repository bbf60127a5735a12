"""
Protocol session engine.

Correlates outgoing requests with their replies, dispatches incoming
requests and notifications to the handler registry, and enforces
timeouts and cancellation. Role-specific handshake rules live in
ClientSession and ServerSession.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Coroutine, Generator

from parley.auth import AuthInfo, TokenVerifier, authorize
from parley.config import SessionOptions
from parley.protocol.errors import (
    HandlerError,
    MCPError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportClosedError,
)
from parley.protocol.handlers import (
    NO_TIMEOUT,
    HandlerRegistry,
    RequestContext,
    RequestHandler,
    RequestOptions,
)
from parley.protocol.messages import (
    InvalidMessage,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    MessageKind,
    RequestId,
    parse_message,
)
from parley.protocol.pending import PendingRequest, PendingRequestTable
from parley.protocol.state import ProtocolState, ProtocolStateMachine
from parley.transport.base import Transport, TransportError
from parley.transport.types import MessageExtra
from parley.utilities.cancellation import CancellationToken
from parley.utilities.progress import ProgressReporter
from parley.utilities.types import CancellationInfo, ProgressInfo

logger = logging.getLogger(__name__)

CANCELLED_NOTIFICATION = "notifications/cancelled"
PROGRESS_NOTIFICATION = "notifications/progress"

ErrorCallback = Callable[[Exception], None]
CloseCallback = Callable[[], None]


class OutgoingRequest:
    """
    Handle for one sent request.

    Await it for the result. ``cancel()`` settles it locally and tells
    the peer; on an already settled request it does nothing.
    """

    def __init__(
        self,
        session: "ProtocolSession",
        entry: PendingRequest,
        result_type: Callable[[Any], Any] | None = None,
    ):
        self._session = session
        self._entry = entry
        self._result_type = result_type

    @property
    def id(self) -> RequestId:
        return self._entry.id

    @property
    def method(self) -> str:
        return self._entry.method

    def done(self) -> bool:
        """Check if the request has settled."""
        return self._entry.future.done()

    def cancel(self, reason: str | None = None) -> bool:
        """
        Cancel the request.

        Returns:
            True if this call settled the request, False if it had
            already settled.
        """
        return self._session.cancel_request(self._entry.id, reason)

    async def _result(self) -> Any:
        result = await self._entry.future
        if self._result_type is not None:
            return self._result_type(result)
        return result

    def __await__(self) -> Generator[Any, None, Any]:
        return self._result().__await__()

    def __repr__(self) -> str:
        return f"OutgoingRequest({self.method}, id={self.id}, done={self.done()})"


class ProtocolSession:
    """
    One end of an MCP connection.

    All bookkeeping (pending table, id allocation, in-flight handler
    tokens) is touched only from the event loop. ``on_incoming`` never
    suspends: handler work runs in separately scheduled tasks.
    """

    def __init__(
        self,
        handlers: HandlerRegistry | None = None,
        options: SessionOptions | None = None,
        token_verifier: TokenVerifier | None = None,
        required_scopes: tuple[str, ...] = (),
    ):
        """
        Args:
            handlers: Registry of request/notification handlers.
            options: Session tunables (timeouts, limits, strictness).
            token_verifier: If set, every inbound request must carry a
                valid bearer token.
            required_scopes: Scopes every inbound token must carry.
        """
        self.handlers = handlers or HandlerRegistry()
        self.options = options or SessionOptions()
        self._token_verifier = token_verifier
        self._required_scopes = tuple(required_scopes)

        self._state = ProtocolStateMachine()
        self._pending = PendingRequestTable()
        self._transport: Transport | None = None
        self._in_flight: dict[RequestId, CancellationToken] = {}
        self._tasks: set[asyncio.Task] = set()
        self._queued_debounced: set[str] = set()
        self._torn_down = False

        self.on_close: CloseCallback | None = None
        self.on_error: ErrorCallback | None = None

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def state(self) -> ProtocolState:
        return self._state.state

    @property
    def state_machine(self) -> ProtocolStateMachine:
        return self._state

    @property
    def pending(self) -> PendingRequestTable:
        """The outstanding outgoing requests."""
        return self._pending

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def is_closed(self) -> bool:
        return self._state.is_closed

    async def connect(self, transport: Transport) -> None:
        """
        Attach a transport and start it.

        Raises:
            RuntimeError: If the session already has a transport.
        """
        if self._transport is not None:
            raise RuntimeError("Session is already connected")
        if self._state.is_closed:
            raise TransportClosedError.because("Session is closed")

        self._transport = transport
        transport.on_message = self.on_incoming
        transport.on_close = self._on_transport_close
        transport.on_error = self._on_transport_error
        await transport.start()
        logger.info(f"{type(self).__name__} connected via {type(transport).__name__}")

    async def close(self) -> None:
        """
        Close the session and its transport.

        Pending requests settle with TransportClosedError and in-flight
        handlers see their cancellation token set.
        """
        transport = self._transport
        self._teardown("Session closed")
        if transport is not None:
            await transport.close()

    def _teardown(self, reason: str) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self._state.close()

        error = TransportClosedError.because(reason)
        count = self._pending.reject_all(error)
        if count:
            logger.info(f"Rejected {count} pending request(s): {reason}")

        for token in list(self._in_flight.values()):
            token.cancel(reason)
        self._in_flight.clear()
        self._queued_debounced.clear()

        logger.info(f"{type(self).__name__} closed: {reason}")
        if self.on_close is not None:
            try:
                self.on_close()
            except Exception:
                logger.exception("on_close callback failed")

    def _on_transport_close(self) -> None:
        self._teardown("Connection closed")

    def _on_transport_error(self, error: Exception) -> None:
        self._report_error(error)
        if isinstance(error, TransportError) and error.fatal:
            logger.error(f"Fatal transport error: {error}")
            self._teardown(f"Transport failed: {error}")
            if self._transport is not None:
                self._spawn(self._transport.close())

    def _report_error(self, error: Exception) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception("on_error callback failed")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Hooks for role-specific rules

    def _assert_can_send_request(self, method: str) -> None:
        """Raise MCPError if this side may not send ``method`` now."""

    def _assert_can_send_notification(self, method: str) -> None:
        """Raise MCPError if this side may not send notification ``method`` now."""

    def _assert_request_handler_capability(self, method: str) -> None:
        """Raise if this side may not register a handler for ``method``."""

    def _check_incoming_request(self, request: JSONRPCRequest) -> MCPError | None:
        """Return an error to refuse ``request`` before it reaches a handler."""
        return None

    def _check_incoming_notification(self, notification: JSONRPCNotification) -> str | None:
        """Return a reason to drop ``notification`` before it reaches a handler."""
        return None

    def _builtin_request_handler(self, method: str) -> RequestHandler | None:
        if method == "ping":
            return self._handle_ping
        return None

    async def _handle_ping(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Handler registration

    def set_request_handler(
        self,
        method: str,
        handler: RequestHandler,
        replace: bool = True,
    ) -> None:
        """Register a request handler after checking this side's capabilities."""
        self._assert_request_handler_capability(method)
        self.handlers.on_request(method, handler, replace=replace)

    def set_notification_handler(self, method: str, handler: Callable[..., Any]) -> None:
        self.handlers.on_notification(method, handler)

    # ------------------------------------------------------------------
    # Outgoing

    def _ensure_open(self) -> Transport:
        if self._state.is_closed:
            raise TransportClosedError.because("Session is closed")
        if self._transport is None:
            raise TransportClosedError.because("Session is not connected")
        return self._transport

    def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> OutgoingRequest:
        """
        Send a request and return a handle for its single outcome.

        Args:
            method: The RPC method name.
            params: Optional method parameters.
            options: Timeout, progress and result conversion options.

        Returns:
            An awaitable OutgoingRequest.

        Raises:
            TransportClosedError: If the session is closed or not connected.
            MCPError: If the request is not allowed right now, or its
                progress token is already in use.
        """
        options = options or RequestOptions()
        self._ensure_open()
        self._assert_can_send_request(method)

        progress_token = options.progress_token
        if progress_token is not None and self._pending.has_progress_token(progress_token):
            raise MCPError.invalid_params(f"Progress token already in use: {progress_token!r}")

        if len(self._pending) >= self.options.max_pending_requests:
            raise MCPError.internal_error(
                f"Too many pending requests ({self.options.max_pending_requests})"
            )

        loop = asyncio.get_running_loop()
        request_id = self._pending.allocate_id()
        if progress_token is None and options.on_progress is not None:
            # The id doubles as the token, so skip ids a caller already used as one
            while self._pending.has_progress_token(request_id):
                request_id = self._pending.allocate_id()
            progress_token = request_id

        wire_params = params
        if progress_token is not None:
            wire_params = dict(params or {})
            meta = dict(wire_params.get("_meta") or {})
            meta["progressToken"] = progress_token
            wire_params["_meta"] = meta

        timeout = options.timeout if options.timeout is not None else self.options.request_timeout
        if timeout == NO_TIMEOUT:
            timeout = None
        entry = PendingRequest(
            id=request_id,
            method=method,
            future=loop.create_future(),
            timeout=timeout,
            max_total_timeout=options.max_total_timeout,
            reset_timeout_on_progress=options.reset_timeout_on_progress,
            progress_token=progress_token,
            on_progress=options.on_progress,
        )
        self._pending.add(entry)
        entry.future.add_done_callback(functools.partial(self._on_future_done, request_id))
        self._arm_timer(entry)

        message = JSONRPCRequest(id=request_id, method=method, params=wire_params)
        logger.debug(f"Sending {message}")
        self._spawn(self._write_request(entry, message))
        return OutgoingRequest(self, entry, options.result_type)

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request and wait for the response.

        Args:
            method: The RPC method name.
            params: Optional method parameters.
            options: Per-call options.
            timeout: Shortcut for ``options.timeout``.

        Returns:
            The result from the response.

        Raises:
            MCPError: The peer's error, or a timeout, cancellation or
                closed-transport error.
        """
        if timeout is not None:
            options = dataclasses.replace(options or RequestOptions(), timeout=timeout)
        return await self.send(method, params, options)

    async def _write_request(self, entry: PendingRequest, message: JSONRPCRequest) -> None:
        transport = self._transport
        if transport is None or entry.settled:
            return
        try:
            await transport.send(message.to_dict())
        except TransportError as e:
            logger.warning(f"Failed to send {message}: {e}")
            error = TransportClosedError.because(f"Failed to send request: {e}")
            error.__cause__ = e
            self._pending.reject(entry.id, error)
            if e.fatal:
                self._on_transport_error(e)
        except Exception as e:
            logger.warning(f"Failed to send {message}: {e}")
            self._pending.reject(entry.id, MCPError.internal_error(f"Failed to send request: {e}"))

    def cancel_request(self, request_id: RequestId, reason: str | None = None) -> bool:
        """
        Cancel an outstanding request.

        Settles it locally with RequestCancelledError and sends one
        best-effort notifications/cancelled to the peer.

        Returns:
            True if the request was pending, False if it had already
            settled (nothing happens then).
        """
        entry = self._pending.pop(request_id)
        if entry is None:
            return False
        entry.cancelled = True
        entry.settle_error(RequestCancelledError.because(reason))
        logger.info(f"Cancelled {entry}: {reason or 'no reason given'}")
        self._send_cancellation(entry, reason)
        return True

    def _on_future_done(self, request_id: RequestId, future: asyncio.Future[Any]) -> None:
        # The awaiting task was cancelled, which cancelled the future itself
        if not future.cancelled():
            return
        entry = self._pending.pop(request_id)
        if entry is None:
            return
        entry.cancelled = True
        logger.info(f"Caller abandoned {entry}")
        self._send_cancellation(entry, "Request cancelled by caller")

    def _send_cancellation(self, entry: PendingRequest, reason: str | None) -> None:
        if entry.method == "initialize":
            return
        if self._state.is_closed or self._transport is None:
            return
        info = CancellationInfo(request_id=entry.id, reason=reason)
        message = JSONRPCNotification(method=CANCELLED_NOTIFICATION, params=info.to_dict())
        self._spawn(self._write_quietly(message.to_dict()))

    async def _write_quietly(self, message: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None or self._state.is_closed:
            return
        try:
            await transport.send(message)
        except Exception as e:
            logger.debug(f"Best-effort send of {message.get('method')} failed: {e}")

    # Timers

    def _arm_timer(self, entry: PendingRequest) -> None:
        entry.cancel_timer()
        delay = entry.timeout
        if entry.max_total_timeout is not None:
            remaining = entry.max_total_timeout - entry.elapsed
            delay = remaining if delay is None else min(delay, remaining)
        if delay is None:
            return
        loop = asyncio.get_running_loop()
        entry.timeout_handle = loop.call_later(max(delay, 0.0), self._on_timeout, entry.id)

    def _on_timeout(self, request_id: RequestId) -> None:
        entry = self._pending.get(request_id)
        if entry is None:
            return
        entry.timeout_handle = None
        if entry.max_total_timeout is not None and entry.elapsed >= entry.max_total_timeout:
            error = RequestTimeoutError.after(
                entry.max_total_timeout,
                f"Maximum total timeout of {entry.max_total_timeout}s exceeded",
            )
        else:
            error = RequestTimeoutError.after(entry.timeout or 0.0)
        self._expire(entry, error)

    def _expire(self, entry: PendingRequest, error: RequestTimeoutError) -> None:
        if self._pending.reject(entry.id, error) is None:
            return
        logger.info(f"{entry} timed out: {error.message}")
        self._send_cancellation(entry, error.message)

    # Notifications

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """
        Send a notification (fire-and-forget).

        Methods listed in ``debounced_notification_methods`` and sent
        without params are coalesced: repeated calls within one loop
        tick produce a single message.

        Raises:
            TransportClosedError: If the session is closed or not connected.
            MCPError: If the notification is not allowed right now.
        """
        transport = self._ensure_open()
        self._assert_can_send_notification(method)

        message = JSONRPCNotification(method=method, params=params)

        if params is None and method in self.options.debounced_notification_methods:
            if method in self._queued_debounced:
                logger.debug(f"Coalesced {message}")
                return
            self._queued_debounced.add(method)
            asyncio.get_running_loop().call_soon(self._flush_debounced, message)
            return

        logger.debug(f"Sending {message}")
        await transport.send(message.to_dict())

    def _flush_debounced(self, message: JSONRPCNotification) -> None:
        if message.method not in self._queued_debounced:
            return
        self._queued_debounced.discard(message.method)
        logger.debug(f"Sending debounced {message}")
        self._spawn(self._write_quietly(message.to_dict()))

    # ------------------------------------------------------------------
    # Incoming

    def on_incoming(self, message: Any, extra: MessageExtra | None = None) -> None:
        """
        Accept one decoded message from the transport.

        Never suspends: replies settle pending requests directly,
        requests and notification handlers are scheduled as tasks.
        """
        if self._state.is_closed:
            logger.debug("Ignoring message received after close")
            return

        parsed = parse_message(message)
        kind = parsed.kind
        if kind is MessageKind.RESPONSE:
            self._handle_response(parsed)
        elif kind is MessageKind.ERROR:
            self._handle_error_response(parsed)
        elif kind is MessageKind.REQUEST:
            self._handle_request(parsed, extra)
        elif kind is MessageKind.NOTIFICATION:
            self._handle_notification(parsed)
        else:
            self._handle_invalid(parsed)

    def _handle_response(self, response: JSONRPCResponse) -> None:
        entry = self._pending.resolve(response.id, response.result)
        if entry is None:
            logger.debug(f"Discarding reply for unknown request id {response.id!r}")
        else:
            logger.debug(f"Received {response} for {entry.method}")

    def _handle_error_response(self, response: JSONRPCErrorResponse) -> None:
        if response.id is None:
            logger.warning(f"Peer reported an error without an id: {response.error.message}")
            self._report_error(MCPError.from_dict(response.error.to_dict()))
            return
        error = MCPError.from_dict(response.error.to_dict())
        entry = self._pending.reject(response.id, error)
        if entry is None:
            logger.debug(f"Discarding error for unknown request id {response.id!r}")
        else:
            logger.debug(f"Received {response} for {entry.method}")

    def _handle_invalid(self, invalid: InvalidMessage) -> None:
        error = MCPError.parse_error(invalid.reason)
        self._report_error(error)
        if invalid.id is None:
            logger.warning(f"Dropping invalid message: {invalid.reason}")
            return
        logger.warning(f"Rejecting invalid message id={invalid.id!r}: {invalid.reason}")
        self._spawn(self._send_error(invalid.id, error))

    def _handle_request(self, request: JSONRPCRequest, extra: MessageExtra | None) -> None:
        logger.debug(f"Received {request}")

        if request.id in self._in_flight:
            # The peer's original request still owns this id
            logger.warning(f"Dropping {request}: id is already in progress")
            self._report_error(
                MCPError.invalid_request(f"Request id {request.id!r} is already in progress")
            )
            return

        refusal = self._check_incoming_request(request)
        if refusal is not None:
            logger.warning(f"Refusing {request}: {refusal.message}")
            self._spawn(self._send_error(request.id, refusal))
            return

        token = CancellationToken()
        self._in_flight[request.id] = token
        self._spawn(self._run_request(request, extra, token))

    def _resolve_request_handler(self, method: str) -> RequestHandler | None:
        handler = self.handlers.request_handler(method)
        if handler is not None:
            return handler
        handler = self._builtin_request_handler(method)
        if handler is not None:
            return handler
        fallback = self.handlers.fallback_request_handler
        if fallback is not None:
            return functools.partial(fallback, method)
        return None

    def _build_context(
        self,
        request: JSONRPCRequest,
        extra: MessageExtra | None,
        token: CancellationToken,
        auth_info: AuthInfo | None,
    ) -> RequestContext:
        meta = request.meta
        progress = None
        progress_token = meta.get("progressToken")
        if progress_token is not None and not isinstance(progress_token, bool):
            progress = ProgressReporter(progress_token, self.notify)
        return RequestContext(
            request_id=request.id,
            method=request.method,
            session=self,
            cancellation=token,
            auth_info=auth_info,
            session_id=extra.session_id if extra else None,
            meta=meta,
            request_info=extra.request_info if extra else None,
            progress=progress,
        )

    async def _authorize(self, extra: MessageExtra | None) -> AuthInfo | MCPError | None:
        if extra is not None and extra.auth_info is not None:
            return extra.auth_info
        if self._token_verifier is None:
            return None
        token = extra.auth_token if extra else None
        return await authorize(self._token_verifier, token, self._required_scopes)

    async def _run_request(
        self,
        request: JSONRPCRequest,
        extra: MessageExtra | None,
        token: CancellationToken,
    ) -> None:
        result: Any = None
        error: MCPError | None = None
        try:
            auth = await self._authorize(extra)
            if isinstance(auth, MCPError):
                logger.warning(f"Unauthorized {request}: {auth.message}")
                error = auth
            else:
                handler = self._resolve_request_handler(request.method)
                if handler is None:
                    error = MCPError.method_not_found(request.method)
                else:
                    context = self._build_context(request, extra, token, auth)
                    result = await handler(request.params or {}, context)
        except MCPError as e:
            error = e
        except Exception as e:
            logger.exception(f"Handler for {request.method} failed")
            error = HandlerError.wrap(request.method, e)
            self._report_error(error)
        finally:
            if self._in_flight.get(request.id) is token:
                del self._in_flight[request.id]

        if token.cancelled:
            logger.debug(f"Not replying to cancelled {request}")
            return

        if error is not None:
            await self._send_error(request.id, error)
        else:
            await self._send_result(request.id, result)

    async def _send_result(self, request_id: RequestId, result: Any) -> None:
        if result is None:
            result = {}
        elif hasattr(result, "to_dict"):
            result = result.to_dict()
        await self._send_reply(JSONRPCResponse(id=request_id, result=result).to_dict())

    async def _send_error(self, request_id: RequestId | None, error: MCPError) -> None:
        response = JSONRPCErrorResponse.create(
            id=request_id,
            code=error.code,
            message=error.message,
            data=error.data,
        )
        await self._send_reply(response.to_dict())

    async def _send_reply(self, message: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None or self._state.is_closed:
            logger.debug(f"Session closed; dropping reply to {message.get('id')!r}")
            return
        try:
            await transport.send(message)
        except Exception as e:
            logger.warning(f"Failed to send reply to {message.get('id')!r}: {e}")
            self._report_error(e)

    def _handle_notification(self, notification: JSONRPCNotification) -> None:
        logger.debug(f"Received {notification}")
        refusal = self._check_incoming_notification(notification)
        if refusal is not None:
            logger.warning(f"Dropping {notification}: {refusal}")
            return

        params = notification.params or {}

        if notification.method == CANCELLED_NOTIFICATION:
            self._handle_cancelled(params)
        elif notification.method == PROGRESS_NOTIFICATION:
            self._handle_progress(params)

        handlers = self.handlers.notification_handlers(notification.method)
        for handler in handlers:
            self._spawn(self._run_notification_handler(notification.method, handler, params))

        fallback = self.handlers.fallback_notification_handler
        if not handlers and fallback is not None:
            self._spawn(
                self._run_notification_handler(
                    notification.method,
                    functools.partial(fallback, notification.method),
                    params,
                )
            )

    async def _run_notification_handler(
        self,
        method: str,
        handler: Callable[[dict[str, Any]], Awaitable[None] | None],
        params: dict[str, Any],
    ) -> None:
        try:
            result = handler(params)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Notification handler for {method} failed")
            self._report_error(e)

    def _handle_cancelled(self, params: dict[str, Any]) -> None:
        try:
            info = CancellationInfo.from_dict(params)
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed cancellation: {e}")
            return
        token = self._in_flight.get(info.request_id)
        if token is None:
            logger.debug(f"Cancellation for unknown request {info.request_id!r}")
            return
        logger.info(f"Peer cancelled request {info.request_id!r}: {info.reason or 'no reason given'}")
        token.cancel(info.reason)

    def _handle_progress(self, params: dict[str, Any]) -> None:
        try:
            info = ProgressInfo.from_dict(params)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed progress notification: {e}")
            return

        entry = self._pending.find_by_progress_token(info.progress_token)
        if entry is None:
            logger.debug(f"Ignoring progress for unknown token {info.progress_token!r}")
            return

        if entry.reset_timeout_on_progress:
            if entry.max_total_timeout is not None and entry.elapsed >= entry.max_total_timeout:
                self._expire(
                    entry,
                    RequestTimeoutError.after(
                        entry.max_total_timeout,
                        f"Maximum total timeout of {entry.max_total_timeout}s exceeded",
                    ),
                )
                return
            self._arm_timer(entry)

        if entry.on_progress is not None:
            self._spawn(self._run_progress_callback(entry, info))

    async def _run_progress_callback(self, entry: PendingRequest, info: ProgressInfo) -> None:
        assert entry.on_progress is not None
        try:
            result = entry.on_progress(info)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Progress callback for {entry} failed")
            self._report_error(e)
