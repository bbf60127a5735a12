"""
MCP Protocol Utilities.

Progress reporting, cooperative cancellation and ping helpers.
"""

from parley.utilities.types import (
    ProgressToken,
    ProgressInfo,
    CancellationInfo,
)
from parley.utilities.cancellation import CancellationToken
from parley.utilities.progress import ProgressReporter
from parley.utilities.ping import ping_peer, ping_with_retry

__all__ = [
    # Types
    "ProgressToken",
    "ProgressInfo",
    "CancellationInfo",
    # Cancellation
    "CancellationToken",
    # Progress
    "ProgressReporter",
    # Ping
    "ping_peer",
    "ping_with_retry",
]
