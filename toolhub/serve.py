"""FastAPI app factory: wires cache, providers, catalog and routes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from toolhub.cache import CacheStore, MemoryCacheStore, RedisCacheStore
from toolhub.catalog import BUILTIN_EXECUTORS, StaticToolRegistry
from toolhub.config import Settings, get_settings
from toolhub.definitions import ToolDefinitionStore
from toolhub.exceptions import CatalogLoadError
from toolhub.manifest.enrichers import DEFAULT_ENRICHERS, Enricher
from toolhub.manifest.gateway import ManifestCacheGateway
from toolhub.manifest.service import ManifestService
from toolhub.providers.manager import ChannelFactory, ProviderManager
from toolhub.providers.store import PostgresProviderConfigSource
from toolhub.providers.transport import open_channel
from toolhub.routes import router
from toolhub.tenants import ProviderConfigSource, StaticProviderConfigSource, YamlProviderConfigSource

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request handler needs, attached to ``app.state.toolhub``."""

    settings: Settings
    cache: CacheStore
    config_source: ProviderConfigSource
    providers: ProviderManager
    registry: StaticToolRegistry | None
    gateway: ManifestCacheGateway | None
    enrichers: Sequence[Enricher] = field(default_factory=lambda: DEFAULT_ENRICHERS)
    catalog_error: CatalogLoadError | None = None


def _default_cache(settings: Settings) -> CacheStore:
    if settings.redis_url:
        return RedisCacheStore.from_url(settings.redis_url)
    logger.info("No TOOLHUB_REDIS_URL set; using in-process manifest cache")
    return MemoryCacheStore()


def _default_config_source(settings: Settings) -> ProviderConfigSource:
    if settings.database_url:
        return PostgresProviderConfigSource(settings.database_url)
    if settings.providers_file:
        return YamlProviderConfigSource(settings.providers_file)
    return StaticProviderConfigSource()


def build_context(
    settings: Settings,
    *,
    cache: CacheStore | None = None,
    config_source: ProviderConfigSource | None = None,
    channel_factory: ChannelFactory = open_channel,
    registry: StaticToolRegistry | None = None,
    enrichers: Sequence[Enricher] = DEFAULT_ENRICHERS,
) -> AppContext:
    cache = cache if cache is not None else _default_cache(settings)
    config_source = config_source if config_source is not None else _default_config_source(settings)
    providers = ProviderManager(
        cache,
        channel_factory=channel_factory,
        server_tools_ttl_s=settings.server_tools_ttl_s,
    )
    ctx = AppContext(
        settings=settings,
        cache=cache,
        config_source=config_source,
        providers=providers,
        registry=None,
        gateway=None,
        enrichers=tuple(enrichers),
    )

    try:
        ctx.registry = registry if registry is not None else StaticToolRegistry.load(settings.catalog_path)
    except CatalogLoadError as exc:
        logger.critical("Static tool catalog failed to load: %s", exc)
        ctx.catalog_error = exc
        return ctx

    definitions = ToolDefinitionStore(BUILTIN_EXECUTORS)
    definitions.load_builtins()
    service = ManifestService(
        ctx.registry,
        providers,
        definitions,
        allow_list=settings.included_tools,
        deny_list=settings.filtered_tools,
    )
    ctx.gateway = ManifestCacheGateway(cache, service, ttl_s=settings.manifest_ttl_s)
    logger.info("Tool catalog ready: %d built-in tools", len(ctx.registry))
    return ctx


async def _catalog_error_handler(request: Request, exc: CatalogLoadError) -> JSONResponse:
    return JSONResponse({"message": str(exc)}, status_code=500)


def create_app(settings: Settings | None = None, **context_overrides) -> FastAPI:
    settings = settings or get_settings()
    ctx = build_context(settings, **context_overrides)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("toolhub starting (default tenant: %s)", settings.default_tenant)
        yield
        if isinstance(ctx.cache, RedisCacheStore) and hasattr(ctx.cache.client, "aclose"):
            await ctx.cache.client.aclose()
        logger.info("toolhub stopped")

    app = FastAPI(
        title="toolhub",
        description="Tool manifest aggregation service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.toolhub = ctx
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CatalogLoadError, _catalog_error_handler)
    app.include_router(router)
    return app


def main() -> None:
    import uvicorn

    load_dotenv()
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8070)


if __name__ == "__main__":
    main()
