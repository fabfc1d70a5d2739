"""toolhub configuration."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Environment-driven settings for the manifest service."""

    # Cache store: empty -> in-process memory cache
    redis_url: str = ""
    # Tenant provider configuration: Postgres when set, else providers_file
    database_url: str = ""
    providers_file: str = ""

    # Built-in catalog override (JSON list of descriptors)
    catalog_path: str = ""

    default_tenant: str = "default"

    # Allow-list wins outright when non-empty; deny-list applies otherwise
    included_tools: list[str] = []
    filtered_tools: list[str] = []

    manifest_ttl_s: int = 300
    server_tools_ttl_s: int = 60

    cors_origins: list[str] = ["http://localhost:3080", "http://localhost:5173"]
    log_level: str = "INFO"

    model_config = {"env_prefix": "TOOLHUB_", "env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    logger.info(
        "toolhub config: redis=%s, postgres=%s, providers_file=%s",
        bool(settings.redis_url),
        bool(settings.database_url),
        settings.providers_file or "-",
    )
    return settings
