from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from toolhub.cache import (
    CircuitBreaker,
    CircuitState,
    MemoryCacheStore,
    RedisCacheStore,
    generation_key,
    manifest_key,
    server_tools_key,
)
from toolhub.exceptions import CacheUnavailableError


def _make_client(*, get_val: str | None = None) -> AsyncMock:
    client = AsyncMock()
    client.get = AsyncMock(return_value=get_val)
    client.set = AsyncMock(return_value=True)
    return client


class TestKeys:
    def test_key_formats(self):
        assert manifest_key("plugins", "acme", 3) == "plugins:acme:g3"
        assert server_tools_key("acme", "Foo") == "server_tools:acme:Foo"
        assert generation_key("acme") == "provider_generation:acme"

    def test_tenants_isolated(self):
        assert manifest_key("tools", "a", 1) != manifest_key("tools", "b", 1)


class TestMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_get_missing(self):
        assert await MemoryCacheStore().get("nope") is None

    @pytest.mark.asyncio
    async def test_set_get_returns_copy(self):
        cache = MemoryCacheStore()
        value = [{"pluginKey": "calculator"}]
        await cache.set("k", value)
        value[0]["pluginKey"] = "changed"
        got = await cache.get("k")
        assert got == [{"pluginKey": "calculator"}]
        got.append({})
        assert await cache.get("k") == [{"pluginKey": "calculator"}]

    @pytest.mark.asyncio
    async def test_expiry(self):
        cache = MemoryCacheStore()
        with patch("toolhub.cache.time.monotonic", return_value=100.0):
            await cache.set("k", 1, ttl=10)
        with patch("toolhub.cache.time.monotonic", return_value=105.0):
            assert await cache.get("k") == 1
        with patch("toolhub.cache.time.monotonic", return_value=110.0):
            assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_expired_keys_purged_on_set(self):
        cache = MemoryCacheStore()
        with patch("toolhub.cache.time.monotonic", return_value=100.0):
            for i in range(1000):
                await cache.set(f"k{i}", i, ttl=1)
            await cache.set("forever", "x")
        with patch("toolhub.cache.time.monotonic", return_value=102.0):
            await cache.set("fresh", 1, ttl=1)
        assert sorted(cache._data) == ["forever", "fresh"]


class TestRedisCacheStore:
    @pytest.mark.asyncio
    async def test_set_namespaces_and_encodes(self):
        client = _make_client()
        store = RedisCacheStore(client=client)
        await store.set("plugins:t:g1", [{"pluginKey": "x"}], ttl=30)
        client.set.assert_called_once_with("toolhub:plugins:t:g1", json.dumps([{"pluginKey": "x"}]), ex=30)

    @pytest.mark.asyncio
    async def test_get_decodes(self):
        client = _make_client(get_val='[{"pluginKey": "x"}]')
        store = RedisCacheStore(client=client, namespace="ns")
        assert await store.get("k") == [{"pluginKey": "x"}]
        client.get.assert_called_once_with("ns:k")

    @pytest.mark.asyncio
    async def test_get_undecodable_is_miss(self):
        store = RedisCacheStore(client=_make_client(get_val="{not json"))
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_connection_error_raises_cache_unavailable(self):
        client = _make_client()
        client.get.side_effect = RedisConnectionError("refused")
        store = RedisCacheStore(client=client)
        with pytest.raises(CacheUnavailableError) as exc_info:
            await store.get("k")
        assert exc_info.value.key == "k"

    @pytest.mark.asyncio
    async def test_circuit_opens_after_threshold(self):
        client = _make_client()
        client.get.side_effect = RedisConnectionError("refused")
        store = RedisCacheStore(client=client, circuit_breaker=CircuitBreaker(failure_threshold=2))

        for _ in range(2):
            with pytest.raises(CacheUnavailableError):
                await store.get("k")
        assert store.circuit_breaker.state is CircuitState.OPEN

        with pytest.raises(CacheUnavailableError, match="circuit open"):
            await store.set("k", 1)
        assert client.get.call_count == 2
        client.set.assert_not_called()


class TestCircuitBreaker:
    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=5.0)
        with patch("toolhub.cache.time.monotonic", return_value=0.0):
            cb.record_failure()
            assert cb.state is CircuitState.OPEN
            assert not cb.allow_request()
        with patch("toolhub.cache.time.monotonic", return_value=6.0):
            assert cb.state is CircuitState.HALF_OPEN
            assert cb.allow_request()

    def test_failed_probe_reopens(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=5.0)
        with patch("toolhub.cache.time.monotonic", return_value=0.0):
            cb.record_failure()
        with patch("toolhub.cache.time.monotonic", return_value=6.0):
            assert cb.state is CircuitState.HALF_OPEN
            cb.record_failure()
            assert cb.state is CircuitState.OPEN

    def test_success_closes(self):
        cb = CircuitBreaker(failure_threshold=1)
        cb.record_failure()
        cb.record_success()
        assert cb.state is CircuitState.CLOSED
