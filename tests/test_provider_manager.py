from __future__ import annotations

import logging

import pytest

from toolhub.cache import MemoryCacheStore, server_tools_key
from toolhub.models import CustomUserVar
from toolhub.providers.manager import ProviderManager, custom_vars_auth_config, normalize_tools


def _keys(tools):
    return [t.plugin_key for t in tools]


class TestNormalize:
    def test_namespaces_and_keeps_schema(self, make_config):
        config = make_config("Foo")
        raw = [{"name": "search", "description": "Search", "inputSchema": {"type": "object"}}]
        (tool,) = normalize_tools(config, raw)
        assert tool.plugin_key == "search::Foo"
        assert tool.name == "search"
        assert tool.input_schema == {"type": "object"}

    def test_malformed_entries_dropped(self, make_config, caplog):
        config = make_config("Foo")
        raw = [{"name": "ok"}, {"description": "no name"}, "not a dict", {"name": "   "}]
        with caplog.at_level(logging.WARNING, logger="toolhub.providers.manager"):
            tools = normalize_tools(config, raw)
        assert _keys(tools) == ["ok::Foo"]
        assert len([r for r in caplog.records if "Dropping tool" in r.getMessage()]) == 3

    def test_custom_user_vars_become_auth_config(self, make_config):
        config = make_config("Foo", custom_user_vars={"FOO_TOKEN": CustomUserVar(title="Token")})
        (tool,) = normalize_tools(config, [{"name": "search"}])
        assert [(r.auth_field, r.label) for r in tool.auth_config] == [("FOO_TOKEN", "Token")]

    def test_custom_vars_label_falls_back_to_field(self):
        reqs = custom_vars_auth_config({"A": CustomUserVar()})
        assert reqs[0].label == "A"
        assert custom_vars_auth_config(None) == ()


class TestLoadManifestTools:
    @pytest.mark.asyncio
    async def test_no_configs(self, channel_factory):
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)
        assert await manager.load_manifest_tools([], tenant="t") == []
        assert channel_factory.opened == []

    @pytest.mark.asyncio
    async def test_output_follows_configuration_order(self, channel_factory, make_config):
        channel_factory.add("slow", "a", "b", delay_s=0.2)
        channel_factory.add("fast", "c")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)

        tools = await manager.load_manifest_tools([make_config("slow"), make_config("fast")], tenant="t")
        assert _keys(tools) == ["a::slow", "b::slow", "c::fast"]

    @pytest.mark.asyncio
    async def test_timed_out_provider_contributes_nothing(self, channel_factory, make_config, caplog):
        channel_factory.add("X", "never", delay_s=1.0)
        channel_factory.add("Y", "one", "two", "three")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)

        with caplog.at_level(logging.ERROR, logger="toolhub.providers.manager"):
            tools = await manager.load_manifest_tools(
                [make_config("X", timeout_ms=100), make_config("Y")],
                tenant="t",
            )

        assert _keys(tools) == ["one::Y", "two::Y", "three::Y"]
        assert any("X" in r.getMessage() and r.levelno == logging.ERROR for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unreachable_and_protocol_errors_isolated(self, channel_factory, make_config):
        channel_factory.fail("broken")
        channel_factory.add("ok", "tool")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)

        tools = await manager.load_manifest_tools(
            [make_config("missing"), make_config("broken"), make_config("ok")],
            tenant="t",
        )
        assert _keys(tools) == ["tool::ok"]

    @pytest.mark.asyncio
    async def test_per_server_cache_written(self, channel_factory, make_config):
        channel_factory.add("Foo", "search")
        cache = MemoryCacheStore()
        manager = ProviderManager(cache, channel_factory=channel_factory)

        await manager.load_manifest_tools([make_config("Foo")], tenant="acme")

        assert await cache.get(server_tools_key("acme", "Foo")) is not None
        cached = await manager.get_server_tools("Foo", tenant="acme")
        assert _keys(cached) == ["search::Foo"]
        assert cached[0].input_schema is not None
        assert await manager.get_server_tools("Foo", tenant="other") is None

    @pytest.mark.asyncio
    async def test_failed_provider_not_cached(self, channel_factory, make_config):
        channel_factory.fail("broken")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)
        await manager.load_manifest_tools([make_config("broken")], tenant="t")
        assert await manager.get_server_tools("broken", tenant="t") is None

    @pytest.mark.asyncio
    async def test_custom_callback_receives_each_server(self, channel_factory, make_config):
        channel_factory.add("A", "x")
        channel_factory.add("B", "y", "z")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)
        seen: dict[str, list[str]] = {}

        async def _record(server_name, tools):
            seen[server_name] = _keys(tools)

        await manager.load_manifest_tools(
            [make_config("A"), make_config("B")],
            tenant="t",
            server_tools_callback=_record,
        )
        assert seen == {"A": ["x::A"], "B": ["y::B", "z::B"]}


class TestCallTool:
    def test_call_tool_flattens_text_content(self, channel_factory, make_config):
        channel_factory.add("Foo", "search")
        manager = ProviderManager(MemoryCacheStore(), channel_factory=channel_factory)
        out = manager.call_tool(make_config("Foo"), "search", {"query": "hi"})
        assert out == 'search:{"query": "hi"}'
        assert channel_factory.calls == [("search", {"query": "hi"})]
