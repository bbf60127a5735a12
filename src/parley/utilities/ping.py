"""Ping helpers for connection health checks."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from parley.protocol.errors import MCPError

if TYPE_CHECKING:
    from parley.protocol.session import ProtocolSession

logger = logging.getLogger(__name__)

PING_METHOD = "ping"


async def ping_peer(
    session: "ProtocolSession",
    timeout: float = 5.0,
) -> bool:
    """
    Ping the peer to check connection health.

    Ping is bidirectional and allowed before the handshake completes.

    Args:
        session: The session to ping through.
        timeout: Timeout in seconds for the ping request.

    Returns:
        True if the peer responded, False on timeout or error.
    """
    try:
        await session.request(PING_METHOD, timeout=timeout)
        logger.debug("Ping successful")
        return True
    except MCPError as e:
        logger.warning(f"Ping failed: {e}")
        return False


async def ping_with_retry(
    session: "ProtocolSession",
    retries: int = 3,
    timeout: float = 5.0,
    delay: float = 1.0,
) -> bool:
    """
    Ping the peer with retries.

    Args:
        session: The session to ping through.
        retries: Number of attempts.
        timeout: Timeout per ping in seconds.
        delay: Delay between attempts in seconds.

    Returns:
        True if any ping succeeded, False if all failed.
    """
    for attempt in range(retries):
        if await ping_peer(session, timeout):
            return True
        if attempt < retries - 1:
            logger.debug(f"Ping attempt {attempt + 1} failed, retrying...")
            await asyncio.sleep(delay)

    logger.warning(f"All {retries} ping attempts failed")
    return False
