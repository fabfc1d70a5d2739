"""Date/time tool."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from langchain_core.tools import tool


@tool
def current_datetime(tz: str = "UTC") -> str:
    """Return the current date and time (ISO 8601) in the IANA timezone *tz*."""
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return f"Error: unknown timezone {tz!r}"
    return datetime.now(timezone.utc).astimezone(zone).isoformat()
