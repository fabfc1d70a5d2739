"""Defined-tool store: keys that have a runnable implementation.

Built-in executables are imported lazily from the catalog's executor table.
Provider tools become defined once a fetch has produced them; they are
wrapped as LangChain tools that call back into the provider.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable, Mapping

from langchain_core.tools import BaseTool

from toolhub.models import ProviderConfig, ToolDescriptor
from toolhub.providers.manager import ProviderManager
from toolhub.providers.tool_adapter import build_provider_tool

logger = logging.getLogger(__name__)


def _import_tool(module_path: str, attr: str) -> BaseTool:
    module = importlib.import_module(module_path)
    return getattr(module, attr)


class ToolDefinitionStore:
    """Runnable tools keyed by plugin key, with per-tenant provider tools."""

    def __init__(self, builtin_executors: Mapping[str, tuple[str, str]] | None = None) -> None:
        self._builtin_executors = dict(builtin_executors or {})
        self._builtin: dict[str, BaseTool] = {}
        self._provider: dict[str, dict[str, BaseTool]] = {}

    def load_builtins(self) -> None:
        """Import built-in tool implementations; failures only drop that tool."""
        for key, (module_path, attr) in self._builtin_executors.items():
            try:
                self._builtin[key] = _import_tool(module_path, attr)
            except (ImportError, AttributeError):
                logger.warning("Failed to load built-in tool %s", key, exc_info=True)
        logger.info("Loaded %d built-in tool executors", len(self._builtin))

    def register_provider_tools(
        self,
        tenant: str,
        descriptors: Iterable[ToolDescriptor],
        configs: Iterable[ProviderConfig],
        manager: ProviderManager,
    ) -> int:
        """Replace *tenant*'s provider tools with wrappers for *descriptors*."""
        by_server = {c.server_name: c for c in configs}
        tools: dict[str, BaseTool] = {}
        for descriptor in descriptors:
            config = by_server.get(descriptor.server_name or "")
            if config is None:
                continue
            try:
                tools[descriptor.plugin_key] = build_provider_tool(descriptor, config, manager)
            except (TypeError, ValueError, NameError) as exc:
                # pydantic rejects some property names (leading underscores, reserved names)
                logger.warning("Cannot wrap provider tool %s: %s", descriptor.plugin_key, exc)
        self._provider[tenant] = tools
        return len(tools)

    def defined_keys(self, tenant: str) -> set[str]:
        return {*self._builtin, *self._provider.get(tenant, {})}

    def get(self, key: str, *, tenant: str) -> BaseTool | None:
        tool = self._builtin.get(key)
        if tool is not None:
            return tool
        return self._provider.get(tenant, {}).get(key)
