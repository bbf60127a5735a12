"""Progress reporting for long-running request handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from parley.utilities.types import ProgressInfo, ProgressToken

logger = logging.getLogger(__name__)

PROGRESS_NOTIFICATION = "notifications/progress"

NotificationSender = Callable[[str, dict[str, Any] | None], Awaitable[None]]


@dataclass
class ProgressReporter:
    """
    Reports progress for one incoming request back to its sender.

    Created by the session when the request carried
    ``params._meta.progressToken``.
    """

    token: ProgressToken
    _send: NotificationSender
    _last_progress: float | None = None

    async def report(
        self,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        """
        Report progress to the requester.

        Args:
            progress: Current progress value.
            total: Total value (if known).
            message: Optional progress message.

        Raises:
            ValueError: If progress does not increase.
        """
        if self._last_progress is not None and progress <= self._last_progress:
            raise ValueError(
                f"Progress must increase: {progress} <= {self._last_progress}"
            )
        self._last_progress = progress

        info = ProgressInfo(
            progress_token=self.token,
            progress=progress,
            total=total,
            message=message,
        )
        logger.debug(f"Reporting progress: token={self.token}, progress={progress}, total={total}")
        await self._send(PROGRESS_NOTIFICATION, info.to_dict())
