"""Response enrichers: pure ``(manifest, context) -> manifest`` stages.

The request handler runs the stages in order just before responding. Each
stage returns new descriptors and leaves its input untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from toolhub.models import ProviderConfig, ToolDescriptor


@dataclass(frozen=True)
class EnrichmentContext:
    tenant: str
    configs: Sequence[ProviderConfig] = field(default_factory=tuple)

    def config_for(self, server_name: str | None) -> ProviderConfig | None:
        if server_name is None:
            return None
        for config in self.configs:
            if config.server_name == server_name:
                return config
        return None


Enricher = Callable[[list[ToolDescriptor], EnrichmentContext], list[ToolDescriptor]]


def apply_server_chat_menu(tools: list[ToolDescriptor], context: EnrichmentContext) -> list[ToolDescriptor]:
    """Hide provider tools from the chat menu when their server says ``chatMenu: false``."""
    out: list[ToolDescriptor] = []
    for tool in tools:
        config = context.config_for(tool.server_name)
        if config is not None and not config.chat_menu and tool.chat_menu:
            tool = tool.model_copy(update={"chat_menu": False})
        out.append(tool)
    return out


def apply_server_icons(tools: list[ToolDescriptor], context: EnrichmentContext) -> list[ToolDescriptor]:
    """Give provider tools without an icon their server's ``iconPath``."""
    out: list[ToolDescriptor] = []
    for tool in tools:
        config = context.config_for(tool.server_name)
        if config is not None and config.icon_path and not tool.icon:
            tool = tool.model_copy(update={"icon": config.icon_path})
        out.append(tool)
    return out


DEFAULT_ENRICHERS: tuple[Enricher, ...] = (apply_server_chat_menu, apply_server_icons)


def enrich(
    tools: list[ToolDescriptor],
    context: EnrichmentContext,
    stages: Sequence[Enricher] = DEFAULT_ENRICHERS,
) -> list[ToolDescriptor]:
    for stage in stages:
        tools = stage(tools, context)
    return tools
