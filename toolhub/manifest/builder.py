"""Manifest builder: merge, dedupe, authenticate and filter tool descriptors.

Pipeline (order matters):

1. provider descriptors, then static descriptors
2. drop repeated keys, first occurrence wins
3. compute ``authenticated`` for each descriptor
4. allow-list (absolute when non-empty) or deny-list
5. keep defined tools and toolkits with at least one defined member
6. per-server ``customUserVars`` overrides for provider descriptors
7. final de-duplication

Steps 5 and 6 only run when a defined-key set / server overrides are passed.
Inputs are never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from toolhub.auth import AuthFieldResolver
from toolhub.exceptions import MalformedToolDescriptorError
from toolhub.models import ProviderConfig, ToolDescriptor
from toolhub.providers.manager import custom_vars_auth_config
from toolhub.toolkits import has_member

logger = logging.getLogger(__name__)

DescriptorInput = ToolDescriptor | Mapping[str, Any]


def unique_by_key(tools: Iterable[ToolDescriptor]) -> list[ToolDescriptor]:
    """Drop descriptors whose key was already seen, preserving order."""
    seen: set[str] = set()
    unique: list[ToolDescriptor] = []
    for tool in tools:
        key = tool.plugin_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(tool)
    return unique


def _coerce(items: Iterable[DescriptorInput], origin: str) -> list[ToolDescriptor]:
    tools: list[ToolDescriptor] = []
    for item in items:
        if isinstance(item, ToolDescriptor):
            tools.append(item)
            continue
        try:
            tools.append(ToolDescriptor.model_validate(item))
        except ValidationError as exc:
            err = MalformedToolDescriptorError(item, "; ".join(e["msg"] for e in exc.errors()))
            logger.warning("Dropping %s descriptor: %s", origin, err.detail)
    return tools


class ManifestBuilder:
    def __init__(self, resolver: AuthFieldResolver | None = None) -> None:
        self._resolver = resolver or AuthFieldResolver()

    def _authenticate(self, tool: ToolDescriptor) -> ToolDescriptor:
        authenticated = self._resolver.is_authenticated(tool)
        if authenticated == tool.authenticated:
            return tool
        return tool.model_copy(update={"authenticated": authenticated})

    @staticmethod
    def _apply_inclusion(
        tools: list[ToolDescriptor],
        allow_list: Collection[str],
        deny_list: Collection[str],
    ) -> list[ToolDescriptor]:
        if allow_list:
            allowed = set(allow_list)
            return [t for t in tools if t.plugin_key in allowed]
        denied = set(deny_list)
        return [t for t in tools if t.plugin_key not in denied]

    @staticmethod
    def _keep_defined(tools: list[ToolDescriptor], defined_keys: Collection[str]) -> list[ToolDescriptor]:
        defined = set(defined_keys)
        kept: list[ToolDescriptor] = []
        for tool in tools:
            if tool.plugin_key in defined:
                kept.append(tool)
            elif tool.toolkit and has_member(tool.plugin_key, defined):
                kept.append(tool)
        return kept

    @staticmethod
    def _apply_server_overrides(
        tool: ToolDescriptor,
        server_overrides: Mapping[str, ProviderConfig],
    ) -> ToolDescriptor:
        if not tool.is_provider_tool:
            return tool
        config = server_overrides.get(tool.server_name or "")
        if config is None or config.custom_user_vars is None:
            return tool
        if not config.custom_user_vars:
            # Server explicitly needs no user credentials
            return tool.model_copy(update={"auth_config": (), "authenticated": True})
        return tool.model_copy(
            update={
                "auth_config": custom_vars_auth_config(config.custom_user_vars),
                "authenticated": False,
            }
        )

    def build(
        self,
        static_tools: Iterable[DescriptorInput],
        provider_tools: Iterable[DescriptorInput],
        defined_tool_keys: Collection[str] | None = None,
        allow_list: Collection[str] = (),
        deny_list: Collection[str] = (),
        server_overrides: Mapping[str, ProviderConfig] | None = None,
    ) -> list[ToolDescriptor]:
        merged = [*_coerce(provider_tools, "provider"), *_coerce(static_tools, "static")]
        tools = unique_by_key(merged)
        tools = [self._authenticate(t) for t in tools]
        tools = self._apply_inclusion(tools, allow_list, deny_list)

        if defined_tool_keys is not None:
            tools = self._keep_defined(tools, defined_tool_keys)

        if server_overrides is not None:
            tools = [self._apply_server_overrides(t, server_overrides) for t in tools]

        result = unique_by_key(tools)
        logger.debug(
            "Built manifest: %d merged -> %d tools (%d from providers)",
            len(merged),
            len(result),
            sum(1 for t in result if t.is_provider_tool),
        )
        return result
