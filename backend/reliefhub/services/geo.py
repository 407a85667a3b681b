"""Geographic points, great-circle distance, and resource proximity matching."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reliefhub.core.errors import ValidationError
from reliefhub.core.logging import get_logger

if TYPE_CHECKING:
    from reliefhub.db.store import DurableStore, Record

logger = get_logger(__name__)

EARTH_RADIUS_METERS = 6_371_008.8
SRID = 4326
_EWKT_POINT = re.compile(
    r"^\s*(?:SRID=(?P<srid>\d+);)?\s*POINT\s*\(\s*(?P<lng>[-+0-9.eE]+)\s+(?P<lat>[-+0-9.eE]+)\s*\)\s*$",
    re.IGNORECASE,
)


def _coerce_coordinate(raw: object, *, name: str) -> float:
    if isinstance(raw, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError as exc:
            raise ValidationError(f"{name} must be a number") from exc
    else:
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite")
    return value


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 point; persisted as EWKT built from the (lng, lat) pair."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValidationError("lat must be between -90 and 90")
        if not -180.0 <= self.lng <= 180.0:
            raise ValidationError("lng must be between -180 and 180")

    @classmethod
    def from_mapping(cls, raw: object) -> GeoPoint:
        """Build a point from a `{lat, lng}` mapping or raise `ValidationError`."""
        if not isinstance(raw, Mapping):
            raise ValidationError("location must be an object with lat and lng")
        if "lat" not in raw or "lng" not in raw:
            raise ValidationError("location requires both lat and lng")
        return cls(
            lat=_coerce_coordinate(raw["lat"], name="lat"),
            lng=_coerce_coordinate(raw["lng"], name="lng"),
        )

    @classmethod
    def from_ewkt(cls, raw: str | None) -> GeoPoint | None:
        """Parse `SRID=4326;POINT(lng lat)`; returns None for empty or foreign values."""
        if not raw:
            return None
        match = _EWKT_POINT.match(raw)
        if match is None:
            return None
        srid = match.group("srid")
        if srid is not None and int(srid) != SRID:
            return None
        try:
            return cls(lat=float(match.group("lat")), lng=float(match.group("lng")))
        except (ValueError, ValidationError):
            return None

    def to_ewkt(self) -> str:
        return f"SRID={SRID};POINT({self.lng} {self.lat})"

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


def haversine_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points on a spherical earth."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


@dataclass(frozen=True)
class BoundingBox:
    """Coarse prefilter box; `min_lng`/`max_lng` are None when longitude is unbounded."""

    min_lat: float
    max_lat: float
    min_lng: float | None
    max_lng: float | None


def bounding_box(center: GeoPoint, radius_meters: float) -> BoundingBox:
    """Return a box that contains every point within `radius_meters` of `center`."""
    angular = radius_meters / EARTH_RADIUS_METERS
    d_lat = math.degrees(angular)
    min_lat = max(-90.0, center.lat - d_lat)
    max_lat = min(90.0, center.lat + d_lat)
    # Near the poles or across the antimeridian only latitude bounds are safe.
    if min_lat <= -90.0 or max_lat >= 90.0:
        return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=None, max_lng=None)
    d_lng = math.degrees(angular / max(math.cos(math.radians(center.lat)), 1e-12))
    min_lng = center.lng - d_lng
    max_lng = center.lng + d_lng
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=None, max_lng=None)
    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=min_lng, max_lng=max_lng)


def parse_center(raw: object) -> GeoPoint:
    """Validate a search center given as a `GeoPoint` or `{lat, lng}` mapping."""
    if isinstance(raw, GeoPoint):
        return raw
    return GeoPoint.from_mapping(raw)


class GeoMatcher:
    """Rank a disaster's resources by distance from a point."""

    table = "resources"

    def __init__(self, store: DurableStore) -> None:
        self._store = store

    async def nearby(
        self,
        disaster_id: object,
        center: GeoPoint | Mapping[str, object],
        radius_meters: float,
    ) -> list[Record]:
        """Return resources of `disaster_id` within `radius_meters`, nearest first."""
        point = parse_center(center)
        if isinstance(radius_meters, bool) or not isinstance(radius_meters, (int, float)):
            raise ValidationError("radius_meters must be a number")
        if not math.isfinite(radius_meters) or radius_meters <= 0:
            raise ValidationError("radius_meters must be a positive number")

        rows = await self._store.geo_query(self.table, disaster_id, point, float(radius_meters))
        matches: list[Record] = []
        for row in rows:
            if str(row.get("disaster_id")) != str(disaster_id):
                continue
            distance = row.get("distance_meters")
            if not isinstance(distance, (int, float)):
                located = GeoPoint.from_ewkt(row.get("location"))  # type: ignore[arg-type]
                if located is None:
                    continue
                distance = haversine_meters(point, located)
            if distance > radius_meters:
                continue
            matches.append({**row, "distance_meters": float(distance)})
        matches.sort(key=lambda item: item["distance_meters"])
        logger.debug(
            "geo.nearby.matched",
            extra={
                "disaster_id": str(disaster_id),
                "radius_meters": radius_meters,
                "count": len(matches),
            },
        )
        return matches
