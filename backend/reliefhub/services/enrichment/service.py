"""Cached enrichment lookups used by the HTTP layer.

Only complete answers are cached. A chained lookup (text to place name to
coordinates) stores nothing when any step fails, so a cache hit is always a
directly returnable result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from reliefhub.core.errors import ValidationError
from reliefhub.core.logging import get_logger
from reliefhub.services.cache import cache_key, encode_text

if TYPE_CHECKING:
    from reliefhub.services.cache import CacheAside
    from reliefhub.services.enrichment.providers import (
        Geocoder,
        ImageAnalyzer,
        ImageFetcher,
        LocationExtractor,
        PageTitleFetcher,
    )

logger = get_logger(__name__)

MOCK_SOCIAL_POSTS: tuple[dict[str, str], ...] = (
    {"post": "#floodrelief Need food in NYC", "user": "citizen1"},
    {"post": "Power outage in Lower East Side", "user": "citizen2"},
    {"post": "Red Cross shelter open in Brooklyn", "user": "reliefAdmin"},
    {"post": "Urgent: SOS in Queens", "user": "citizen1"},
)


def _require_text(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value.strip()


def _require_http_url(value: object, name: str) -> str:
    url = _require_text(value, name)
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError(f"{name} must be an http(s) URL")
    return url


class EnrichmentService:
    """Provider chains wrapped by a shared `CacheAside`."""

    def __init__(
        self,
        cache: CacheAside,
        *,
        location_extractor: LocationExtractor,
        geocoder: Geocoder,
        image_fetcher: ImageFetcher,
        image_analyzer: ImageAnalyzer,
        page_title_fetcher: PageTitleFetcher,
        official_sources: Sequence[tuple[str, str]] = (),
        ttl_seconds: float | None = None,
    ) -> None:
        self._cache = cache
        self._location_extractor = location_extractor
        self._geocoder = geocoder
        self._image_fetcher = image_fetcher
        self._image_analyzer = image_analyzer
        self._page_title_fetcher = page_title_fetcher
        self._official_sources = tuple(official_sources)
        self._ttl_seconds = ttl_seconds

    async def geocode_text(self, text: str) -> tuple[dict[str, Any], bool]:
        """Resolve free text to `{location_name, lat, lng}`."""
        cleaned = _require_text(text, "text")

        async def _resolve() -> dict[str, Any]:
            location_name = await self._location_extractor.extract_location(cleaned)
            point = await self._geocoder.geocode(location_name)
            return {"location_name": location_name, "lat": point.lat, "lng": point.lng}

        result, cached = await self._cache.get_or_compute(
            cache_key("geocode", encode_text(cleaned)),
            _resolve,
            self._ttl_seconds,
        )
        logger.info(
            "enrichment.geocode.resolved",
            extra={"location_name": result.get("location_name"), "cached": cached},
        )
        return result, cached

    async def verify_image(
        self,
        disaster_id: object,
        image_url: str,
    ) -> tuple[dict[str, Any], bool]:
        """Download an image and ask the analyzer about manipulation and context."""
        url = _require_http_url(image_url, "image_url")

        async def _analyze() -> dict[str, Any]:
            image = await self._image_fetcher.fetch_image(url)
            analysis = await self._image_analyzer.analyze_image(image.content, image.mime_type)
            return {"image_url": url, "analysis": analysis}

        result, cached = await self._cache.get_or_compute(
            cache_key("verify-image", disaster_id, encode_text(url)),
            _analyze,
            self._ttl_seconds,
        )
        logger.info(
            "enrichment.image.verified",
            extra={"disaster_id": str(disaster_id), "cached": cached},
        )
        return result, cached

    async def official_updates(self, disaster_id: object) -> tuple[list[dict[str, str]], bool]:
        """Headlines from every configured official source, fetched concurrently."""

        async def _collect() -> list[dict[str, str]]:
            titles = await asyncio.gather(
                *(self._page_title_fetcher.fetch_page_title(url) for _, url in self._official_sources),
            )
            return [
                {"source": name, "headline": title}
                for (name, _), title in zip(self._official_sources, titles, strict=True)
            ]

        updates, cached = await self._cache.get_or_compute(
            cache_key("official-updates", disaster_id),
            _collect,
            self._ttl_seconds,
        )
        logger.info(
            "enrichment.official_updates.fetched",
            extra={"disaster_id": str(disaster_id), "count": len(updates), "cached": cached},
        )
        return updates, cached

    async def social_media_feed(self) -> tuple[list[dict[str, str]], bool]:
        """Fixed sample feed standing in for a real social media integration."""

        async def _load() -> list[dict[str, str]]:
            return [dict(post) for post in MOCK_SOCIAL_POSTS]

        posts, cached = await self._cache.get_or_compute(
            "mock-social-media",
            _load,
            self._ttl_seconds,
        )
        logger.info("enrichment.social_media.fetched", extra={"count": len(posts), "cached": cached})
        return posts, cached
