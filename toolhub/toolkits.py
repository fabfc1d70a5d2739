"""Toolkit membership: a toolkit key groups concrete tools sharing its base name."""

from __future__ import annotations

from collections.abc import Iterable

from toolhub.naming import strip_server_suffix


def has_member(toolkit_key: str, defined_keys: Iterable[str]) -> bool:
    """Return True if some defined key, minus its ``::server`` suffix, equals *toolkit_key*."""
    return any(strip_server_suffix(k) == toolkit_key for k in defined_keys)
