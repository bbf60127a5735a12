"""Bearer-token verification boundary for inbound requests."""

from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol, Sequence, Union, runtime_checkable

from parley.protocol.errors import MCPError

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised by a TokenVerifier to reject a token."""

    pass


@dataclass(frozen=True)
class AuthInfo:
    """Information about a verified access token."""

    token: str
    client_id: str
    scopes: tuple[str, ...] = ()
    expires_at: int | None = None
    """Expiry as seconds since the epoch."""

    resource: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (time.time() if now is None else now)

    def has_scopes(self, required: Sequence[str]) -> bool:
        return all(scope in self.scopes for scope in required)


@runtime_checkable
class TokenVerifier(Protocol):
    """
    Verifies bearer tokens presented by the peer.

    Implementations return AuthInfo, or raise InvalidTokenError. They may
    be sync or async.
    """

    def verify_access_token(self, token: str) -> Union[AuthInfo, Awaitable[AuthInfo]]:
        ...


async def authorize(
    verifier: TokenVerifier,
    token: str | None,
    required_scopes: Sequence[str] = (),
) -> AuthInfo | MCPError:
    """
    Verify a bearer token for one inbound request.

    Args:
        verifier: The verifier to consult.
        token: Token presented with the request, if any.
        required_scopes: Scopes the token must carry.

    Returns:
        The verified AuthInfo, or an Unauthorized MCPError. Verifier
        failures other than InvalidTokenError propagate.
    """
    if not token:
        return MCPError.unauthorized("Missing bearer token")

    try:
        result = verifier.verify_access_token(token)
        info = await result if inspect.isawaitable(result) else result
    except InvalidTokenError as e:
        logger.info(f"Rejected access token: {e}")
        return MCPError.unauthorized(f"Invalid token: {e}")

    if info.is_expired():
        return MCPError.unauthorized("Token has expired")

    if not info.has_scopes(required_scopes):
        missing = [scope for scope in required_scopes if scope not in info.scopes]
        return MCPError.unauthorized(f"Insufficient scope: {' '.join(missing)}")

    return info


class StaticTokenVerifier:
    """Verifier backed by a fixed token table, for tests and local setups."""

    def __init__(self, tokens: dict[str, AuthInfo] | None = None):
        self._tokens = dict(tokens or {})

    def add(self, info: AuthInfo) -> None:
        self._tokens[info.token] = info

    def verify_access_token(self, token: str) -> AuthInfo:
        try:
            return self._tokens[token]
        except KeyError:
            raise InvalidTokenError("Unknown token") from None
