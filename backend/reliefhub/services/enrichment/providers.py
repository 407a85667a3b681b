"""Capability interfaces for external enrichment providers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar

from reliefhub.core.errors import ProviderError, ProviderTimeoutError, ReliefHubError
from reliefhub.core.logging import get_logger

if TYPE_CHECKING:
    from reliefhub.services.geo import GeoPoint

logger = get_logger(__name__)

T = TypeVar("T")
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class FetchedImage:
    content: bytes
    mime_type: str = DEFAULT_IMAGE_MIME_TYPE


class LocationExtractor(Protocol):
    async def extract_location(self, text: str) -> str: ...


class Geocoder(Protocol):
    async def geocode(self, location_name: str) -> GeoPoint: ...


class ImageAnalyzer(Protocol):
    async def analyze_image(
        self,
        image_bytes: bytes,
        mime_type: str = DEFAULT_IMAGE_MIME_TYPE,
    ) -> str: ...


class PageTitleFetcher(Protocol):
    async def fetch_page_title(self, url: str) -> str: ...


class ImageFetcher(Protocol):
    async def fetch_image(self, url: str) -> FetchedImage: ...


async def call_provider(
    provider: str,
    operation: str,
    call: Awaitable[T],
    *,
    timeout_seconds: float,
) -> T:
    """Await a provider call under a deadline and map failures to provider errors."""
    try:
        return await asyncio.wait_for(call, timeout=timeout_seconds)
    except TimeoutError as exc:
        logger.warning(
            "provider.call.timeout",
            extra={"provider": provider, "operation": operation, "timeout_seconds": timeout_seconds},
        )
        raise ProviderTimeoutError(
            f"{provider} {operation} timed out",
            detail=f"exceeded {timeout_seconds}s",
        ) from exc
    except ReliefHubError:
        raise
    except Exception as exc:
        logger.warning(
            "provider.call.failed",
            extra={"provider": provider, "operation": operation, "error": str(exc)},
        )
        raise ProviderError(f"{provider} {operation} failed", detail=str(exc)) from exc
