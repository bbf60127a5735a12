"""Shared payload types for protocol utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

ProgressToken = Union[str, int]


@dataclass
class ProgressInfo:
    """
    Progress notification data.

    Sent via notifications/progress during long-running operations.
    """

    progress_token: ProgressToken
    """Token identifying the operation."""

    progress: float
    """Current progress value (must increase monotonically)."""

    total: float | None = None
    """Total value if known."""

    message: str | None = None
    """Optional progress message."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProgressInfo":
        """Parse from notification params."""
        token = data["progressToken"]
        if isinstance(token, bool) or not isinstance(token, (str, int)):
            raise ValueError(f"Invalid progress token: {token!r}")
        return cls(
            progress_token=token,
            progress=float(data["progress"]),
            total=float(data["total"]) if data.get("total") is not None else None,
            message=data.get("message"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        result: dict[str, Any] = {
            "progressToken": self.progress_token,
            "progress": self.progress,
        }
        if self.total is not None:
            result["total"] = self.total
        if self.message is not None:
            result["message"] = self.message
        return result

    @property
    def percentage(self) -> float | None:
        """Calculate percentage complete if total is known."""
        if self.total is not None and self.total > 0:
            return (self.progress / self.total) * 100
        return None

    @property
    def is_complete(self) -> bool:
        """Check if operation appears complete."""
        if self.total is not None:
            return self.progress >= self.total
        return False


@dataclass
class CancellationInfo:
    """
    Cancellation notification data.

    Sent via notifications/cancelled when a request is cancelled.
    """

    request_id: str | int
    """ID of the cancelled request, exactly as it appeared on the wire."""

    reason: str | None = None
    """Optional reason for cancellation."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CancellationInfo":
        """Parse from notification params."""
        request_id = data["requestId"]
        if isinstance(request_id, bool) or not isinstance(request_id, (str, int)):
            raise ValueError(f"Invalid request id: {request_id!r}")
        return cls(
            request_id=request_id,
            reason=data.get("reason"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        result: dict[str, Any] = {"requestId": self.request_id}
        if self.reason is not None:
            result["reason"] = self.reason
        return result
