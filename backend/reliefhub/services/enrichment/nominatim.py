"""Forward geocoding through an OpenStreetMap Nominatim endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reliefhub.core.errors import ProviderError, ValidationError
from reliefhub.services.enrichment.providers import call_provider
from reliefhub.services.geo import GeoPoint

if TYPE_CHECKING:
    import httpx

PROVIDER_NAME = "nominatim"


class NominatimGeocoder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        user_agent: str,
        timeout_seconds: float,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds

    async def _search(self, location_name: str) -> Any:
        response = await self._client.get(
            self._base_url,
            params={"q": location_name, "format": "json", "limit": 1},
            headers={"User-Agent": self._user_agent},
        )
        response.raise_for_status()
        return response.json()

    async def geocode(self, location_name: str) -> GeoPoint:
        payload = await call_provider(
            PROVIDER_NAME,
            "geocode",
            self._search(location_name),
            timeout_seconds=self._timeout_seconds,
        )
        if not isinstance(payload, list) or not payload:
            raise ProviderError("No geocode result", detail=location_name)
        first = payload[0]
        try:
            return GeoPoint(lat=float(first["lat"]), lng=float(first["lon"]))
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise ProviderError("Malformed geocode result", detail=str(exc)) from exc
