"""Manifest rebuild: provider discovery + static catalog -> builder."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from toolhub.catalog import StaticToolRegistry
from toolhub.definitions import ToolDefinitionStore
from toolhub.manifest.builder import ManifestBuilder
from toolhub.models import ManifestKind, ProviderConfig, ToolDescriptor
from toolhub.providers.manager import ProviderManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestBuild:
    tools: list[ToolDescriptor]
    # provider tools fetched before any filtering
    fetched_provider_tools: int


class ManifestService:
    def __init__(
        self,
        registry: StaticToolRegistry,
        providers: ProviderManager,
        definitions: ToolDefinitionStore,
        *,
        builder: ManifestBuilder | None = None,
        allow_list: Collection[str] = (),
        deny_list: Collection[str] = (),
    ) -> None:
        self.registry = registry
        self.providers = providers
        self.definitions = definitions
        self.builder = builder or ManifestBuilder()
        self.allow_list = tuple(allow_list)
        self.deny_list = tuple(deny_list)

    async def build(
        self,
        kind: ManifestKind,
        tenant: str,
        configs: Sequence[ProviderConfig],
    ) -> ManifestBuild:
        provider_tools = await self.providers.load_manifest_tools(configs, tenant=tenant)
        static_tools = self.registry.list()

        if kind is ManifestKind.PLUGINS:
            tools = self.builder.build(
                static_tools,
                provider_tools,
                allow_list=self.allow_list,
                deny_list=self.deny_list,
            )
            return ManifestBuild(tools, len(provider_tools))

        registered = self.definitions.register_provider_tools(tenant, provider_tools, configs, self.providers)
        logger.debug("Registered %d provider tool executors for tenant %s", registered, tenant)
        overrides: dict[str, ProviderConfig] = {}
        for config in configs:
            overrides.setdefault(config.server_name, config)
        tools = self.builder.build(
            static_tools,
            provider_tools,
            defined_tool_keys=self.definitions.defined_keys(tenant),
            allow_list=self.allow_list,
            deny_list=self.deny_list,
            server_overrides=overrides,
        )
        return ManifestBuild(tools, len(provider_tools))
