"""LangChain tool adapter for provider-discovered tools."""

from __future__ import annotations

import re
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool

from toolhub.models import ProviderConfig, ToolDescriptor
from toolhub.providers.jsonschema import jsonschema_to_pydantic_model
from toolhub.providers.manager import ProviderManager

_NON_IDENT = re.compile(r"[^A-Za-z0-9_]+")


def build_provider_tool(
    descriptor: ToolDescriptor,
    config: ProviderConfig,
    manager: ProviderManager,
) -> BaseTool:
    """Wrap a provider descriptor as a StructuredTool named by its plugin key."""
    model_name = "ProviderArgs_" + _NON_IDENT.sub("_", descriptor.plugin_key)
    args_schema = jsonschema_to_pydantic_model(model_name, descriptor.input_schema)
    tool_name = descriptor.key.base_name

    def _call(**kwargs: Any) -> str:
        return manager.call_tool(config, tool_name, kwargs)

    return StructuredTool.from_function(
        name=descriptor.plugin_key,
        description=descriptor.description or f"{tool_name} from {config.server_name}",
        func=_call,
        args_schema=args_schema,
    )
