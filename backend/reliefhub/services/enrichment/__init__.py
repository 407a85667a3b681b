"""Enrichment providers and the cached service composed from them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from reliefhub.services.enrichment.gemini import (
    GeminiImageAnalyzer,
    GeminiLocationExtractor,
    UnconfiguredGemini,
    build_chat_model,
)
from reliefhub.services.enrichment.nominatim import NominatimGeocoder
from reliefhub.services.enrichment.service import EnrichmentService
from reliefhub.services.enrichment.web import HttpImageFetcher, HttpPageTitleFetcher

if TYPE_CHECKING:
    import httpx

    from reliefhub.core.config import Settings
    from reliefhub.services.cache import CacheAside
    from reliefhub.services.enrichment.providers import ImageAnalyzer, LocationExtractor

__all__ = ["EnrichmentService", "build_enrichment_service"]


def build_enrichment_service(
    settings: Settings,
    cache: CacheAside,
    client: httpx.AsyncClient,
) -> EnrichmentService:
    """Wire the configured providers behind one cached service."""
    timeout = settings.provider_timeout_seconds
    extractor: LocationExtractor
    analyzer: ImageAnalyzer
    if settings.gemini_api_key:
        model = build_chat_model(settings.gemini_api_key, settings.gemini_model)
        extractor = GeminiLocationExtractor(model, timeout_seconds=timeout)
        analyzer = GeminiImageAnalyzer(model, timeout_seconds=timeout)
    else:
        extractor = analyzer = UnconfiguredGemini()
    return EnrichmentService(
        cache,
        location_extractor=extractor,
        geocoder=NominatimGeocoder(
            client,
            base_url=settings.geocoder_url,
            user_agent=settings.geocoder_user_agent,
            timeout_seconds=timeout,
        ),
        image_fetcher=HttpImageFetcher(client, timeout_seconds=timeout),
        image_analyzer=analyzer,
        page_title_fetcher=HttpPageTitleFetcher(client, timeout_seconds=timeout),
        official_sources=settings.official_sources(),
        ttl_seconds=settings.cache_default_ttl_seconds,
    )
