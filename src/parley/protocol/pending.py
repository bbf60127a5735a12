"""Correlation table for outstanding outgoing requests."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator

from parley.protocol.messages import RequestId
from parley.utilities.types import ProgressInfo, ProgressToken

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressInfo], Awaitable[None] | None]


@dataclass
class PendingRequest:
    """
    An outgoing request waiting for its single terminal outcome.

    Owned by the PendingRequestTable from insertion until it is popped;
    only the table settles it.
    """

    id: RequestId
    method: str
    future: asyncio.Future[Any]
    sent_at: float = field(default_factory=time.monotonic)
    timeout: float | None = None
    max_total_timeout: float | None = None
    reset_timeout_on_progress: bool = False
    progress_token: ProgressToken | None = None
    on_progress: ProgressCallback | None = None
    timeout_handle: asyncio.TimerHandle | None = None
    cancelled: bool = False

    @property
    def settled(self) -> bool:
        """Check if the request already has its outcome."""
        return self.future.done()

    @property
    def elapsed(self) -> float:
        """Seconds since the request was sent."""
        return time.monotonic() - self.sent_at

    def cancel_timer(self) -> None:
        """Disarm the timeout timer, if any."""
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None

    def settle_result(self, result: Any) -> bool:
        """Complete with a result. Returns False if already settled."""
        self.cancel_timer()
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def settle_error(self, error: BaseException) -> bool:
        """Complete with an error. Returns False if already settled."""
        self.cancel_timer()
        if self.future.done():
            return False
        self.future.set_exception(error)
        # Callers that stopped awaiting must not trigger "exception never retrieved"
        self.future.add_done_callback(_consume_exception)
        return True

    def __str__(self) -> str:
        return f"PendingRequest({self.method}, id={self.id})"


def _consume_exception(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()


class PendingRequestTable:
    """
    Maps outstanding request ids to their pending entries.

    Allocates ids, indexes entries by progress token, and guarantees each
    entry is removed exactly once: every settling operation pops first
    and only settles what it popped.
    """

    def __init__(self, first_id: int = 0) -> None:
        self._entries: dict[RequestId, PendingRequest] = {}
        self._by_progress_token: dict[ProgressToken, RequestId] = {}
        self._next_id = first_id

    def allocate_id(self) -> int:
        """
        Allocate a request id not currently in use.

        Returns:
            A fresh integer id.
        """
        while self._next_id in self._entries:
            self._next_id += 1
        request_id = self._next_id
        self._next_id += 1
        return request_id

    def add(self, entry: PendingRequest) -> None:
        """
        Insert a pending entry.

        Raises:
            ValueError: If the id or progress token is already pending.
        """
        if entry.id in self._entries:
            raise ValueError(f"Request id already pending: {entry.id!r}")
        if entry.progress_token is not None:
            if entry.progress_token in self._by_progress_token:
                raise ValueError(
                    f"Progress token already in use: {entry.progress_token!r}"
                )
            self._by_progress_token[entry.progress_token] = entry.id
        self._entries[entry.id] = entry

    def get(self, request_id: RequestId) -> PendingRequest | None:
        """Look up a pending entry without removing it."""
        return self._entries.get(request_id)

    def pop(self, request_id: RequestId) -> PendingRequest | None:
        """
        Remove a pending entry and disarm its timer.

        Returns:
            The removed entry, or None if it was not pending.
        """
        entry = self._entries.pop(request_id, None)
        if entry is None:
            return None
        entry.cancel_timer()
        if entry.progress_token is not None:
            self._by_progress_token.pop(entry.progress_token, None)
        return entry

    def resolve(self, request_id: RequestId, result: Any) -> PendingRequest | None:
        """
        Settle a pending request with its result.

        Returns:
            The settled entry, or None for an unknown (stale) id.
        """
        entry = self.pop(request_id)
        if entry is not None:
            entry.settle_result(result)
        return entry

    def reject(self, request_id: RequestId, error: BaseException) -> PendingRequest | None:
        """
        Settle a pending request with an error.

        Returns:
            The settled entry, or None for an unknown (stale) id.
        """
        entry = self.pop(request_id)
        if entry is not None:
            entry.settle_error(error)
        return entry

    def reject_all(self, error: BaseException) -> int:
        """
        Settle every pending request with the same error.

        Returns:
            Number of requests settled.
        """
        count = 0
        for request_id in list(self._entries):
            if self.reject(request_id, error) is not None:
                count += 1
        return count

    def find_by_progress_token(self, token: ProgressToken) -> PendingRequest | None:
        """
        Find the still-pending request a progress token was issued for.

        Returns:
            The entry, or None for an unknown or stale token.
        """
        request_id = self._by_progress_token.get(token)
        if request_id is None:
            return None
        return self._entries.get(request_id)

    def has_progress_token(self, token: ProgressToken) -> bool:
        """Check if a still-pending request was issued with ``token``."""
        return token in self._by_progress_token

    def ids(self) -> list[RequestId]:
        """Ids of all pending requests."""
        return list(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingRequest]:
        return iter(list(self._entries.values()))
