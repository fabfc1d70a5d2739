"""Static tool registry: the catalog of built-in tool descriptors.

The catalog is loaded once at startup and is read-only afterwards. It comes
from the definitions below, or from a JSON file when a catalog path is
configured.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolhub.exceptions import CatalogLoadError, MalformedToolDescriptorError
from toolhub.models import AuthRequirement, ToolDescriptor

logger = logging.getLogger(__name__)


def _auth(*fields: str, label: str | None = None, description: str | None = None) -> AuthRequirement:
    return AuthRequirement(auth_field="||".join(fields), label=label, description=description)


# ---------------------------------------------------------------------------
# Built-in catalog
# ---------------------------------------------------------------------------

_BUILTIN_TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        key="calculator",
        name="Calculator",
        description="Perform simple and complex mathematical calculations.",
    ),
    ToolDescriptor(
        key="current_datetime",
        name="Current Date & Time",
        description="Report the current date and time in a given timezone.",
    ),
    ToolDescriptor(
        key="google",
        name="Google",
        description="Search the web with Google Programmable Search.",
        auth_config=(
            _auth("GOOGLE_CSE_ID", label="Google CSE ID"),
            _auth("GOOGLE_SEARCH_API_KEY", label="Google API Key"),
        ),
    ),
    ToolDescriptor(
        key="dalle",
        name="DALL-E 3",
        description="Create realistic images and art from a text prompt.",
        auth_config=(_auth("DALLE3_API_KEY", "DALLE_API_KEY", label="OpenAI API Key"),),
    ),
    ToolDescriptor(
        key="wolfram",
        name="Wolfram",
        description="Access computation, math and curated knowledge from Wolfram|Alpha.",
        auth_config=(_auth("WOLFRAM_APP_ID", label="Wolfram App ID"),),
    ),
    ToolDescriptor(
        key="tavily_search_results_json",
        name="Tavily Search",
        description="Search engine optimized for comprehensive, accurate results.",
        auth_config=(_auth("TAVILY_API_KEY", label="Tavily API Key"),),
    ),
    ToolDescriptor(
        key="github",
        name="GitHub",
        description="Repository, issue and pull request tools from connected GitHub servers.",
        toolkit=True,
    ),
)

# Built-in tools with a Python implementation: key -> (module, attribute)
BUILTIN_EXECUTORS: dict[str, tuple[str, str]] = {
    "calculator": ("toolhub.tools.calculator", "calculator"),
    "current_datetime": ("toolhub.tools.clock", "current_datetime"),
}


def parse_catalog(entries: Iterable[Any]) -> list[ToolDescriptor]:
    """Validate raw catalog entries, dropping malformed ones."""
    tools: list[ToolDescriptor] = []
    for entry in entries:
        try:
            tools.append(ToolDescriptor.model_validate(entry))
        except ValidationError as exc:
            err = MalformedToolDescriptorError(entry, str(exc.errors()[0].get("msg", exc)))
            logger.warning("Dropping catalog entry: %s", err)
    return tools


def _load_catalog_file(path: str) -> list[ToolDescriptor]:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise CatalogLoadError(path, str(exc)) from exc
    if not isinstance(raw, list):
        raise CatalogLoadError(path, "catalog must be a JSON array")
    return parse_catalog(raw)


class StaticToolRegistry:
    """Immutable catalog of built-in tool descriptors."""

    def __init__(self, tools: Iterable[ToolDescriptor] = _BUILTIN_TOOLS) -> None:
        self._tools: tuple[ToolDescriptor, ...] = tuple(tools)

    @classmethod
    def load(cls, catalog_path: str | None = None) -> "StaticToolRegistry":
        """Load the built-in catalog, or the JSON catalog at *catalog_path*."""
        if not catalog_path:
            return cls()
        tools = _load_catalog_file(catalog_path)
        logger.info("Loaded %d tools from catalog %s", len(tools), catalog_path)
        return cls(tools)

    def list(self) -> list[ToolDescriptor]:
        """Get all built-in descriptors, in catalog order."""
        return [*self._tools]

    def get(self, key: str) -> ToolDescriptor | None:
        for tool in self._tools:
            if tool.plugin_key == key:
                return tool
        return None

    def __len__(self) -> int:
        return len(self._tools)
