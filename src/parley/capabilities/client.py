"""Client capability definitions for MCP negotiation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from parley.capabilities.merge import merge_capability_dicts


@dataclass(frozen=True)
class SamplingCapability:
    """
    Client supports server-initiated LLM sampling.

    When declared, servers may send sampling/createMessage requests.
    """


@dataclass(frozen=True)
class RootsCapability:
    """Client can declare filesystem roots."""

    list_changed: bool = False
    """Whether client will notify server when roots change."""


@dataclass(frozen=True)
class ElicitationCapability:
    """Client supports user input elicitation (elicitation/create)."""


@dataclass(frozen=True)
class ClientCapabilities:
    """
    Capabilities a client declares in its initialize request.

    Instances are immutable; use ``merge`` to build a combined set.
    """

    sampling: SamplingCapability | None = None
    roots: RootsCapability | None = None
    elicitation: ElicitationCapability | None = None
    experimental: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to wire format for the initialize request.

        Returns:
            Dict suitable for JSON serialization.
        """
        caps: dict[str, Any] = {}

        if self.sampling is not None:
            caps["sampling"] = {}

        if self.roots is not None:
            caps["roots"] = {"listChanged": self.roots.list_changed}

        if self.elicitation is not None:
            caps["elicitation"] = {}

        if self.experimental is not None:
            caps["experimental"] = dict(self.experimental)

        return caps

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClientCapabilities":
        """
        Create from wire format.

        Unknown keys are ignored.
        """
        data = data or {}
        roots = data.get("roots")
        return cls(
            sampling=SamplingCapability() if "sampling" in data else None,
            roots=RootsCapability(
                list_changed=bool(roots.get("listChanged", False))
                if isinstance(roots, dict)
                else False
            )
            if "roots" in data
            else None,
            elicitation=ElicitationCapability() if "elicitation" in data else None,
            experimental=data.get("experimental"),
        )

    def merge(self, other: "ClientCapabilities") -> "ClientCapabilities":
        """Return a new set with ``other`` layered over this one."""
        return ClientCapabilities.from_dict(
            merge_capability_dicts(self.to_dict(), other.to_dict())
        )

    def supports_sampling(self) -> bool:
        return self.sampling is not None

    def supports_roots(self) -> bool:
        return self.roots is not None

    def supports_elicitation(self) -> bool:
        return self.elicitation is not None

    def missing_for_request(self, method: str) -> str | None:
        """
        Check whether a request sent *to* this client is covered.

        Args:
            method: Method of a server-to-client request.

        Returns:
            A description of the missing capability, or None if allowed.
        """
        if method == "sampling/createMessage" and not self.supports_sampling():
            return f"Client does not support sampling (required for {method})"
        if method == "elicitation/create" and not self.supports_elicitation():
            return f"Client does not support elicitation (required for {method})"
        if method == "roots/list" and not self.supports_roots():
            return f"Client does not support listing roots (required for {method})"
        return None

    def missing_for_notification(self, method: str) -> str | None:
        """
        Check whether this client may send a notification.

        Returns:
            A description of the missing capability, or None if allowed.
        """
        if method == "notifications/roots/list_changed":
            if self.roots is None or not self.roots.list_changed:
                return (
                    "Client does not support roots list changed notifications "
                    f"(required for {method})"
                )
        return None


DEFAULT_CLIENT_CAPABILITIES = ClientCapabilities()
