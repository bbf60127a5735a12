"""Handler registry and the context handed to request handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from parley.protocol.messages import RequestId
from parley.protocol.pending import ProgressCallback
from parley.utilities.cancellation import CancellationToken
from parley.utilities.progress import ProgressReporter
from parley.utilities.types import ProgressToken

if TYPE_CHECKING:
    from parley.auth import AuthInfo
    from parley.protocol.session import ProtocolSession

logger = logging.getLogger(__name__)

RequestHandler = Callable[[dict[str, Any], "RequestContext"], Awaitable[Any]]
NotificationHandler = Callable[[dict[str, Any]], Awaitable[None] | None]
FallbackRequestHandler = Callable[[str, dict[str, Any], "RequestContext"], Awaitable[Any]]
FallbackNotificationHandler = Callable[[str, dict[str, Any]], Awaitable[None] | None]

NO_TIMEOUT = float("inf")
"""Per-call timeout that disables the session default."""


@dataclass
class RequestOptions:
    """Per-call options for an outgoing request."""

    timeout: float | None = None
    """Seconds to wait for a reply; None uses the session default, NO_TIMEOUT waits forever."""

    progress_token: ProgressToken | None = None
    """Token sent in params._meta; defaults to the request id when on_progress is set."""

    on_progress: ProgressCallback | None = None
    """Called with each ProgressInfo the peer reports for this request."""

    reset_timeout_on_progress: bool = False
    """Restart the timeout whenever progress arrives."""

    max_total_timeout: float | None = None
    """Hard cap in seconds, regardless of progress."""

    result_type: Callable[[Any], Any] | None = None
    """Converts the raw result; chosen by the caller, never guessed."""

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_total_timeout is not None and self.max_total_timeout <= 0:
            raise ValueError("max_total_timeout must be positive")


@dataclass
class RequestContext:
    """
    Everything a request handler may need besides its params.

    Handlers poll ``cancellation`` (or await ``cancellation.wait()``)
    to stop early when the peer cancels the request.
    """

    request_id: RequestId
    method: str
    session: "ProtocolSession"
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    auth_info: "AuthInfo | None" = None
    session_id: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    request_info: dict[str, Any] | None = None
    progress: ProgressReporter | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancellation.cancelled

    @property
    def progress_token(self) -> ProgressToken | None:
        return self.progress.token if self.progress else None

    async def send_notification(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        """Send a notification to the peer while handling this request."""
        await self.session.notify(method, params)

    async def send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """
        Send a request to the peer on behalf of this request.

        The outgoing request is cancelled if this request is cancelled.
        """
        outgoing = self.session.send(method, params, options)
        self.cancellation.on_cancel(
            lambda reason: outgoing.cancel(reason or f"Parent request {self.request_id} cancelled")
        )
        return await outgoing

    async def report_progress(
        self,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        """
        Report progress to the requester.

        A no-op when the requester did not ask for progress.
        """
        if self.progress is None:
            logger.debug(f"No progress token for request {self.request_id}; not reporting")
            return
        await self.progress.report(progress, total, message)


class HandlerRegistry:
    """
    Maps method names to request and notification handlers.

    Created by the application and handed to the session; nothing here
    is module-level state.
    """

    def __init__(self) -> None:
        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, list[NotificationHandler]] = {}
        self.fallback_request_handler: FallbackRequestHandler | None = None
        self.fallback_notification_handler: FallbackNotificationHandler | None = None

    def on_request(
        self,
        method: str,
        handler: RequestHandler,
        replace: bool = True,
    ) -> None:
        """
        Register the handler for a request method.

        Args:
            method: The method name to handle.
            handler: Async function receiving (params, context), returning result.
            replace: If False, refuse to overwrite an existing handler.

        Raises:
            ValueError: If replace is False and a handler already exists.
        """
        if not replace and method in self._request_handlers:
            raise ValueError(f"A request handler for {method} already exists")
        self._request_handlers[method] = handler

    def remove_request_handler(self, method: str) -> None:
        self._request_handlers.pop(method, None)

    def request_handler(self, method: str) -> RequestHandler | None:
        """Look up the handler registered for a method, if any."""
        return self._request_handlers.get(method)

    def has_request_handler(self, method: str) -> bool:
        return method in self._request_handlers

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        """
        Add a handler for a notification method.

        Several handlers may share a method; each runs for every
        notification.
        """
        self._notification_handlers.setdefault(method, []).append(handler)

    def remove_notification_handler(
        self,
        method: str,
        handler: NotificationHandler | None = None,
    ) -> None:
        """Remove one handler, or all handlers for the method."""
        if handler is None:
            self._notification_handlers.pop(method, None)
            return
        handlers = self._notification_handlers.get(method, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._notification_handlers.pop(method, None)

    def notification_handlers(self, method: str) -> list[NotificationHandler]:
        """Snapshot of the handlers for a method."""
        return list(self._notification_handlers.get(method, ()))

    @property
    def request_methods(self) -> list[str]:
        return list(self._request_handlers)
