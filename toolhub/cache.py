"""Cache store layer for manifests and per-server tool lists.

The store is an opaque key-value service. Two implementations are provided:
an in-process TTL dict (single worker, tests) and Redis. Values are
JSON-compatible structures; Redis payloads are JSON encoded.

Redis failures surface as ``CacheUnavailableError`` so callers can switch to
degraded (uncached) mode. A circuit breaker stops retrying a dead Redis on
every request.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from toolhub.exceptions import CacheUnavailableError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key-building helpers (pure functions)
# ---------------------------------------------------------------------------


def manifest_key(kind: str, tenant: str, generation: int) -> str:
    """Build a manifest cache key: ``{kind}:{tenant}:g{generation}``."""
    return f"{kind}:{tenant}:g{generation}"


def server_tools_key(tenant: str, server_name: str) -> str:
    """Build the per-server tool list key: ``server_tools:{tenant}:{server}``."""
    return f"server_tools:{tenant}:{server_name}"


def generation_key(tenant: str) -> str:
    """Build the provider-config generation record key for *tenant*."""
    return f"provider_generation:{tenant}"


# ---------------------------------------------------------------------------
# CacheStore: minimal async interface
# ---------------------------------------------------------------------------


class CacheStore(Protocol):
    async def get(self, key: str) -> Any | None:
        """Return the value at *key*, or ``None`` if absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* at *key* with optional expiry *ttl* (seconds)."""
        ...


class MemoryCacheStore:
    """In-process cache with per-key expiry."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[Any, float | None]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            self._data.pop(key, None)
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        now = time.monotonic()
        self._purge_expired(now)
        expires_at = now + ttl if ttl else None
        self._data[key] = (copy.deepcopy(value), expires_at)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and now >= exp]
        for key in expired:
            del self._data[key]

    def clear(self) -> None:
        self._data.clear()


# ---------------------------------------------------------------------------
# CircuitBreaker
# ---------------------------------------------------------------------------


class CircuitState(Enum):
    CLOSED = "closed"  # requests pass through
    OPEN = "open"  # requests rejected immediately
    HALF_OPEN = "half_open"  # one probe request allowed


@dataclass
class CircuitBreaker:
    """Three-state circuit breaker protecting cache calls.

    Attributes:
        failure_threshold: Number of consecutive failures before opening.
        recovery_timeout:  Seconds to wait in OPEN before probing (HALF_OPEN).
    """

    failure_threshold: int = 3
    recovery_timeout: float = 30.0

    _failures: int = field(default=0, init=False, repr=False)
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False, repr=False)
    _opened_at: float | None = field(default=None, init=False, repr=False)

    @property
    def state(self) -> CircuitState:
        """Current circuit state (may auto-transition OPEN→HALF_OPEN on timeout)."""
        if (
            self._state is CircuitState.OPEN
            and self._opened_at is not None
            and time.monotonic() - self._opened_at >= self.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state is not CircuitState.OPEN

    def record_success(self) -> None:
        self._failures = 0
        self._state = CircuitState.CLOSED
        self._opened_at = None

    def record_failure(self) -> None:
        if self._state is CircuitState.HALF_OPEN:
            # Probe failed, reopen
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            return
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()


# ---------------------------------------------------------------------------
# RedisCacheStore
# ---------------------------------------------------------------------------


class RedisClientProto(Protocol):
    async def get(self, key: str) -> bytes | str | None: ...

    async def set(self, key: str, value: bytes | str, ex: int | None = None) -> Any: ...


@dataclass
class RedisCacheStore:
    """JSON-over-Redis cache store with all keys under ``namespace``."""

    client: RedisClientProto
    namespace: str = "toolhub"
    circuit_breaker: CircuitBreaker = field(default_factory=CircuitBreaker)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisCacheStore":
        return cls(client=aioredis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Any | None:
        if not self.circuit_breaker.allow_request():
            raise CacheUnavailableError(key, "circuit open")
        try:
            raw = await self.client.get(self._key(key))
        except (RedisError, OSError) as exc:
            self.circuit_breaker.record_failure()
            raise CacheUnavailableError(key, str(exc)) from exc
        self.circuit_breaker.record_success()
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("Discarding undecodable cache payload at %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        if not self.circuit_breaker.allow_request():
            raise CacheUnavailableError(key, "circuit open")
        payload = json.dumps(value, default=str)
        try:
            await self.client.set(self._key(key), payload, ex=ttl)
        except (RedisError, OSError) as exc:
            self.circuit_breaker.record_failure()
            raise CacheUnavailableError(key, str(exc)) from exc
        self.circuit_breaker.record_success()
