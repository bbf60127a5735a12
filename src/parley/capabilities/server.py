"""Server capability definitions for MCP negotiation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from parley.capabilities.merge import merge_capability_dicts


@dataclass(frozen=True)
class ServerToolsCapability:
    """Server provides tools that can be called by the client."""

    list_changed: bool = False
    """Server will notify when tool list changes."""


@dataclass(frozen=True)
class ServerResourcesCapability:
    """Server provides resources that can be read by the client."""

    subscribe: bool = False
    """Client can subscribe to resource changes."""

    list_changed: bool = False
    """Server will notify when resource list changes."""


@dataclass(frozen=True)
class ServerPromptsCapability:
    """Server provides prompt templates."""

    list_changed: bool = False
    """Server will notify when prompt list changes."""


# Client-to-server request methods and the server capability each needs
_REQUEST_REQUIREMENTS = {
    "logging/setLevel": "logging",
    "prompts/get": "prompts",
    "prompts/list": "prompts",
    "resources/list": "resources",
    "resources/templates/list": "resources",
    "resources/read": "resources",
    "resources/subscribe": "resources",
    "resources/unsubscribe": "resources",
    "tools/call": "tools",
    "tools/list": "tools",
    "completion/complete": "completions",
}

_NOTIFICATION_REQUIREMENTS = {
    "notifications/message": "logging",
    "notifications/resources/updated": "resources",
    "notifications/resources/list_changed": "resources",
    "notifications/tools/list_changed": "tools",
    "notifications/prompts/list_changed": "prompts",
}


@dataclass(frozen=True)
class ServerCapabilities:
    """
    Capabilities a server declares in its initialize result.

    Instances are immutable; use ``merge`` to build a combined set.
    """

    tools: ServerToolsCapability | None = None
    resources: ServerResourcesCapability | None = None
    prompts: ServerPromptsCapability | None = None
    logging: bool = False
    completions: bool = False
    experimental: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ServerCapabilities":
        """
        Parse from the 'capabilities' object of an initialize result.

        Unknown keys are ignored.
        """
        data = data or {}

        def section(name: str) -> dict[str, Any]:
            value = data.get(name)
            return value if isinstance(value, dict) else {}

        return cls(
            tools=ServerToolsCapability(
                list_changed=bool(section("tools").get("listChanged", False))
            )
            if "tools" in data
            else None,
            resources=ServerResourcesCapability(
                subscribe=bool(section("resources").get("subscribe", False)),
                list_changed=bool(section("resources").get("listChanged", False)),
            )
            if "resources" in data
            else None,
            prompts=ServerPromptsCapability(
                list_changed=bool(section("prompts").get("listChanged", False))
            )
            if "prompts" in data
            else None,
            logging="logging" in data,
            completions="completions" in data,
            experimental=data.get("experimental"),
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dict for serialization.

        Returns:
            Dict suitable for JSON serialization.
        """
        caps: dict[str, Any] = {}

        if self.tools is not None:
            caps["tools"] = {"listChanged": self.tools.list_changed}

        if self.resources is not None:
            caps["resources"] = {
                "subscribe": self.resources.subscribe,
                "listChanged": self.resources.list_changed,
            }

        if self.prompts is not None:
            caps["prompts"] = {"listChanged": self.prompts.list_changed}

        if self.logging:
            caps["logging"] = {}

        if self.completions:
            caps["completions"] = {}

        if self.experimental is not None:
            caps["experimental"] = dict(self.experimental)

        return caps

    def merge(self, other: "ServerCapabilities") -> "ServerCapabilities":
        """Return a new set with ``other`` layered over this one."""
        return ServerCapabilities.from_dict(
            merge_capability_dicts(self.to_dict(), other.to_dict())
        )

    def has(self, name: str) -> bool:
        """Check a top-level capability by its wire name."""
        if name in ("logging", "completions"):
            return bool(getattr(self, name))
        return getattr(self, name, None) is not None

    def missing_for_request(self, method: str) -> str | None:
        """
        Check whether a request handled *by* this server is covered.

        Used client-side before sending, and server-side when a request
        handler is registered.

        Returns:
            A description of the missing capability, or None if allowed.
        """
        if method in ("resources/subscribe", "resources/unsubscribe"):
            if self.resources is None or not self.resources.subscribe:
                return (
                    "Server does not support resource subscriptions "
                    f"(required for {method})"
                )
            return None

        required = _REQUEST_REQUIREMENTS.get(method)
        if required is not None and not self.has(required):
            return f"Server does not support {required} (required for {method})"
        return None

    def missing_for_notification(self, method: str) -> str | None:
        """
        Check whether this server may send a notification.

        Returns:
            A description of the missing capability, or None if allowed.
        """
        required = _NOTIFICATION_REQUIREMENTS.get(method)
        if required is not None and not self.has(required):
            return f"Server does not support {required} (required for {method})"
        return None

    def get_available_features(self) -> list[str]:
        """
        List features available with this server.

        Returns:
            List of feature names.
        """
        return [
            name
            for name in ("tools", "resources", "prompts", "logging", "completions")
            if self.has(name)
        ]
