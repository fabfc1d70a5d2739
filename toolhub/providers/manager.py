"""Provider manager: concurrent tool discovery across configured provider servers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import ValidationError

from toolhub.cache import CacheStore, server_tools_key
from toolhub.exceptions import (
    CacheUnavailableError,
    MalformedToolDescriptorError,
    ProviderError,
    ToolhubError,
)
from toolhub.models import AuthRequirement, CustomUserVar, ProviderConfig, ToolDescriptor, dump_manifest, load_manifest
from toolhub.naming import provider_tool_key
from toolhub.providers.transport import ProviderChannel, content_to_text, open_channel

logger = logging.getLogger(__name__)

ServerToolsCallback = Callable[[str, list[ToolDescriptor]], Awaitable[None]]
ChannelFactory = Callable[[ProviderConfig], ProviderChannel]


def custom_vars_auth_config(custom_user_vars: dict[str, CustomUserVar] | None) -> tuple[AuthRequirement, ...]:
    """One auth requirement per user-supplied variable, in declaration order."""
    if not custom_user_vars:
        return ()
    return tuple(
        AuthRequirement(auth_field=field, label=var.title or field, description=var.description or "")
        for field, var in custom_user_vars.items()
    )


def _normalize_tool(config: ProviderConfig, raw: Any, auth_config: tuple[AuthRequirement, ...]) -> ToolDescriptor:
    if not isinstance(raw, dict):
        raise MalformedToolDescriptorError(raw, "tool entry is not an object")
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MalformedToolDescriptorError(raw, "missing tool name")

    input_schema = raw.get("inputSchema")
    try:
        return ToolDescriptor(
            key=provider_tool_key(config.server_name, name),
            name=name.strip(),
            description=str(raw.get("description") or ""),
            auth_config=auth_config,
            input_schema=input_schema if isinstance(input_schema, dict) else None,
        )
    except (ValidationError, ValueError) as exc:
        raise MalformedToolDescriptorError(raw, str(exc)) from exc


def normalize_tools(config: ProviderConfig, raw_tools: Sequence[Any]) -> list[ToolDescriptor]:
    """Turn a provider's ``tools/list`` entries into namespaced descriptors."""
    auth_config = custom_vars_auth_config(config.custom_user_vars)
    tools: list[ToolDescriptor] = []
    for raw in raw_tools:
        try:
            tools.append(_normalize_tool(config, raw, auth_config))
        except MalformedToolDescriptorError as exc:
            logger.warning("Dropping tool from provider %s: %s", config.server_name, exc.detail)
    return tools


class ProviderManager:
    """Discovers tools from provider servers and caches them per server."""

    def __init__(
        self,
        cache: CacheStore,
        *,
        channel_factory: ChannelFactory = open_channel,
        server_tools_ttl_s: int = 60,
    ) -> None:
        self._cache = cache
        self._channel_factory = channel_factory
        self._server_tools_ttl_s = server_tools_ttl_s

    # ------------------------------------------------------------------
    # Per-server cache
    # ------------------------------------------------------------------

    def server_tools_callback(self, tenant: str) -> ServerToolsCallback:
        async def _store(server_name: str, tools: list[ToolDescriptor]) -> None:
            if not server_name:
                return
            try:
                await self._cache.set(
                    server_tools_key(tenant, server_name),
                    dump_manifest(tools),
                    ttl=self._server_tools_ttl_s,
                )
                logger.debug("Cached %d tools for provider %s (tenant=%s)", len(tools), server_name, tenant)
            except CacheUnavailableError as exc:
                logger.warning("Could not cache tools for provider %s: %s", server_name, exc)

        return _store

    async def get_server_tools(self, server_name: str, *, tenant: str) -> list[ToolDescriptor] | None:
        """Return the last cached tool list for *server_name* without fetching."""
        try:
            payload = await self._cache.get(server_tools_key(tenant, server_name))
        except CacheUnavailableError as exc:
            logger.warning("Could not read cached tools for provider %s: %s", server_name, exc)
            return None
        try:
            return load_manifest(payload)
        except ValidationError:
            logger.warning("Discarding invalid cached tools for provider %s", server_name)
            return None

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _fetch_tools(self, config: ProviderConfig) -> list[dict[str, Any]]:
        with self._channel_factory(config) as channel:
            info = channel.initialize()
            logger.debug(
                "Provider %s speaks protocol %s",
                config.server_name,
                info.get("protocolVersion", "?"),
            )
            return channel.list_tools()

    async def _load_one(self, config: ProviderConfig, callback: ServerToolsCallback) -> list[ToolDescriptor]:
        try:
            raw_tools = await asyncio.wait_for(
                asyncio.to_thread(self._fetch_tools, config),
                timeout=config.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Provider %s timed out after %.1fs; contributing no tools",
                config.server_name,
                config.timeout_s,
            )
            return []
        except ProviderError as exc:
            logger.error("Provider %s failed (%s); contributing no tools", config.server_name, exc.detail)
            return []

        tools = normalize_tools(config, raw_tools)
        try:
            await callback(config.server_name, tools)
        except ToolhubError as exc:
            logger.warning("server tools callback failed for %s: %s", config.server_name, exc)
        return tools

    async def load_manifest_tools(
        self,
        configs: Sequence[ProviderConfig],
        *,
        tenant: str,
        server_tools_callback: ServerToolsCallback | None = None,
    ) -> list[ToolDescriptor]:
        """Fetch every provider concurrently; failed providers contribute nothing.

        Results are joined by configuration index so output order never
        depends on which provider answered first.
        """
        if not configs:
            return []
        callback = server_tools_callback or self.server_tools_callback(tenant)
        per_provider = await asyncio.gather(*(self._load_one(cfg, callback) for cfg in configs))
        tools = [tool for provider_tools in per_provider for tool in provider_tools]
        logger.info(
            "Loaded %d provider tools from %d/%d servers (tenant=%s)",
            len(tools),
            sum(1 for t in per_provider if t),
            len(configs),
            tenant,
        )
        return tools

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def call_tool(self, config: ProviderConfig, tool_name: str, arguments: dict[str, Any]) -> str:
        with self._channel_factory(config) as channel:
            channel.initialize()
            result = channel.call_tool(tool_name, arguments)
        return content_to_text(result)
