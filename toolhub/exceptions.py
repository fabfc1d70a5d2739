"""Exception hierarchy for manifest aggregation.

Provider and descriptor errors are recovered where they occur and only
logged. ``CatalogLoadError`` is the one failure that reaches the HTTP layer.
All exceptions inherit from ``ToolhubError`` to enable blanket handling at
boundaries.
"""

from __future__ import annotations

from typing import Any


class ToolhubError(Exception):
    """Base exception for all toolhub failures."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Provider errors (one provider contributes zero tools)
# ---------------------------------------------------------------------------


class ProviderError(ToolhubError):
    """Base for failures talking to a single tool-provider server."""

    __slots__ = ("detail", "server_name")

    def __init__(self, server_name: str, detail: str) -> None:
        super().__init__(f"provider {server_name!r}: {detail}")
        self.server_name = server_name
        self.detail = detail


class ProviderUnreachableError(ProviderError):
    """The provider could not be started or connected to."""

    __slots__ = ()


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within its configured timeout."""

    __slots__ = ("timeout_s",)

    def __init__(self, server_name: str, timeout_s: float) -> None:
        super().__init__(server_name, f"timed out after {timeout_s:.1f}s")
        self.timeout_s = timeout_s


class ProviderProtocolError(ProviderError):
    """The provider answered with an error or an unparseable payload."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Descriptor / catalog errors
# ---------------------------------------------------------------------------


class MalformedToolDescriptorError(ToolhubError):
    """A single descriptor is missing required fields."""

    __slots__ = ("detail", "payload")

    def __init__(self, payload: Any, detail: str) -> None:
        super().__init__(f"malformed tool descriptor: {detail}")
        self.payload = payload
        self.detail = detail


class CatalogLoadError(ToolhubError):
    """The static tool catalog could not be loaded."""

    __slots__ = ("detail", "source")

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"failed to load tool catalog from {source}: {detail}")
        self.source = source
        self.detail = detail


# ---------------------------------------------------------------------------
# Cache errors
# ---------------------------------------------------------------------------


class CacheUnavailableError(ToolhubError):
    """The cache store cannot be reached."""

    __slots__ = ("key",)

    def __init__(self, key: str, detail: str = "") -> None:
        msg = f"cache unavailable for key {key!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.key = key
