"""Manifest cache gateway.

Manifests are cached under ``{kind}:{tenant}:g{generation}``. The generation
is bumped whenever the fingerprint of a tenant's provider configuration
changes, so adding a provider never serves a manifest built without it.

Each entry records how many provider tools were fetched before filtering.
An entry built while providers were configured but none answered is treated
as stale and rebuilt. If the cache store is unavailable the manifest is built
fresh for every request (degraded mode).
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from toolhub.cache import CacheStore, generation_key, manifest_key
from toolhub.exceptions import CacheUnavailableError
from toolhub.manifest.service import ManifestBuild, ManifestService
from toolhub.models import ManifestKind, ProviderConfig, ToolDescriptor, dump_manifest, load_manifest

logger = logging.getLogger(__name__)


def config_fingerprint(configs: Sequence[ProviderConfig]) -> str:
    payload = [c.model_dump(mode="json", by_alias=True) for c in configs]
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


def needs_repair(fetched_provider_tools: int, configs: Sequence[ProviderConfig]) -> bool:
    """Providers are configured but the cached build fetched none of their tools."""
    return bool(configs) and fetched_provider_tools == 0


def dump_entry(build: ManifestBuild) -> dict[str, Any]:
    return {"fetchedProviderTools": build.fetched_provider_tools, "tools": dump_manifest(build.tools)}


def load_entry(payload: Any) -> ManifestBuild | None:
    """Parse a cache entry; ``None`` when it is missing or not an entry."""
    if not isinstance(payload, dict):
        return None
    fetched = payload.get("fetchedProviderTools")
    tools = load_manifest(payload.get("tools"))
    if tools is None or not isinstance(fetched, int):
        return None
    return ManifestBuild(tools, fetched)


class ManifestCacheGateway:
    def __init__(self, cache: CacheStore, service: ManifestService, *, ttl_s: int = 300) -> None:
        self._cache = cache
        self._service = service
        self._ttl_s = ttl_s

    async def generation(self, tenant: str, configs: Sequence[ProviderConfig]) -> int:
        """Current config generation for *tenant*, bumped on configuration change."""
        fingerprint = config_fingerprint(configs)
        key = generation_key(tenant)
        record = await self._cache.get(key)

        previous = 0
        if isinstance(record, dict) and isinstance(record.get("generation"), int):
            previous = record["generation"]
            if record.get("fingerprint") == fingerprint:
                return previous

        current = previous + 1
        await self._cache.set(key, {"fingerprint": fingerprint, "generation": current})
        logger.info("Provider configuration for tenant %s changed: generation %d", tenant, current)
        return current

    async def _read(self, key: str) -> ManifestBuild | None:
        payload = await self._cache.get(key)
        try:
            return load_entry(payload)
        except ValidationError:
            logger.warning("Discarding invalid cached manifest at %s", key)
            return None

    async def get_or_build(
        self,
        tenant: str,
        configs: Sequence[ProviderConfig],
        kind: ManifestKind = ManifestKind.PLUGINS,
    ) -> list[ToolDescriptor]:
        try:
            key = manifest_key(kind.value, tenant, await self.generation(tenant, configs))
            cached = await self._read(key)
        except CacheUnavailableError as exc:
            logger.warning("Degraded mode, building %s manifest without cache: %s", kind.value, exc)
            return (await self._service.build(kind, tenant, configs)).tools

        if cached is not None:
            if not needs_repair(cached.fetched_provider_tools, configs):
                logger.debug("Manifest cache hit: %s (%d tools)", key, len(cached.tools))
                return cached.tools
            logger.info("Cached %s manifest for %s was built without provider tools; rebuilding", kind.value, tenant)

        build = await self._service.build(kind, tenant, configs)
        try:
            await self._cache.set(key, dump_entry(build), ttl=self._ttl_s)
        except CacheUnavailableError as exc:
            logger.warning("Could not cache %s manifest: %s", kind.value, exc)
        return build.tools
