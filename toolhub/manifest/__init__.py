"""Manifest assembly: builder, cache gateway and response enrichers."""

from toolhub.manifest.builder import ManifestBuilder, unique_by_key
from toolhub.manifest.enrichers import DEFAULT_ENRICHERS, EnrichmentContext, enrich
from toolhub.manifest.gateway import ManifestCacheGateway
from toolhub.manifest.service import ManifestService

__all__ = [
    "DEFAULT_ENRICHERS",
    "EnrichmentContext",
    "ManifestBuilder",
    "ManifestCacheGateway",
    "ManifestService",
    "enrich",
    "unique_by_key",
]
