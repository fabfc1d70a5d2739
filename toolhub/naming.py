"""Naming helpers for tool keys.

Provider tools are identified by a ``(base_name, server_name)`` pair. The
delimited string form (``search::Foo``) only exists at the serialization
boundary.
"""

from __future__ import annotations

from dataclasses import dataclass

PROVIDER_DELIMITER = "::"


@dataclass(frozen=True, order=True)
class ToolKey:
    """Structured tool identifier."""

    base_name: str
    server_name: str | None = None

    def __post_init__(self) -> None:
        if not self.base_name:
            raise ValueError("tool key requires a base name")
        if self.server_name is not None and not self.server_name:
            raise ValueError("provider tool key requires a server name")

    @property
    def is_provider(self) -> bool:
        return self.server_name is not None

    @classmethod
    def parse(cls, value: str) -> "ToolKey":
        """Parse the delimited form, splitting on the last delimiter."""
        v = (value or "").strip()
        if PROVIDER_DELIMITER not in v:
            return cls(v)
        base, _, server = v.rpartition(PROVIDER_DELIMITER)
        return cls(base, server)

    def __str__(self) -> str:
        if self.server_name is None:
            return self.base_name
        return f"{self.base_name}{PROVIDER_DELIMITER}{self.server_name}"


def provider_tool_key(server_name: str, tool_name: str) -> ToolKey:
    """Compute the key for a tool discovered on a provider server."""
    return ToolKey(str(tool_name).strip(), str(server_name).strip())


def is_provider_key(value: str) -> bool:
    return PROVIDER_DELIMITER in (value or "")


def strip_server_suffix(value: str) -> str:
    """Drop the ``::server`` suffix from a delimited key, if present."""
    if PROVIDER_DELIMITER not in (value or ""):
        return value
    return value.rpartition(PROVIDER_DELIMITER)[0]


def server_name_of(value: str) -> str | None:
    if PROVIDER_DELIMITER not in (value or ""):
        return None
    return value.rpartition(PROVIDER_DELIMITER)[2]
