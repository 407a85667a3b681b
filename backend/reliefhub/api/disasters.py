"""Disaster CRUD endpoints and proximity search over a disaster's resources."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query

from reliefhub.api.deps import (
    CALLER_DEP,
    DEFAULT_RADIUS_DEP,
    ENTITIES_DEP,
    GEO_MATCHER_DEP,
)
from reliefhub.core.errors import NotFoundError, ValidationError
from reliefhub.schemas.common import OkResponse
from reliefhub.schemas.disasters import DisasterCreate, DisasterRead, DisasterUpdate
from reliefhub.schemas.resources import NearbyResourceRead
from reliefhub.services.entities import DISASTER

if TYPE_CHECKING:
    from reliefhub.core.roles import Identity
    from reliefhub.services.entities import AuditedEntityStore
    from reliefhub.services.geo import GeoMatcher

router = APIRouter(prefix="/disasters", tags=["disasters"])
TAG_QUERY = Query(default=None, description="Only disasters carrying this tag.")
OWNER_QUERY = Query(default=None, description="Only disasters created by this caller id.")
LAT_QUERY = Query(default=None, description="Search center latitude.")
LON_QUERY = Query(default=None, description="Search center longitude.")
RADIUS_QUERY = Query(default=None, gt=0, description="Search radius in meters.")


@router.post("", response_model=DisasterRead)
async def create_disaster(
    payload: DisasterCreate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> DisasterRead:
    """Record a new disaster owned by the caller."""
    record = await entities.create(DISASTER, payload.model_dump(), caller.id)
    return DisasterRead.model_validate(record)


@router.get("", response_model=list[DisasterRead])
async def list_disasters(
    tag: str | None = TAG_QUERY,
    owner_id: str | None = OWNER_QUERY,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> list[DisasterRead]:
    """List disasters, newest first."""
    records = await entities.list(DISASTER, {"tags": tag, "owner_id": owner_id})
    return [DisasterRead.model_validate(record) for record in records]


@router.get("/{disaster_id}", response_model=DisasterRead)
async def get_disaster(
    disaster_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> DisasterRead:
    record = await entities.get(DISASTER, disaster_id)
    if record is None:
        raise NotFoundError(f"Disaster {disaster_id} not found")
    return DisasterRead.model_validate(record)


@router.put("/{disaster_id}", response_model=DisasterRead)
async def update_disaster(
    disaster_id: UUID,
    payload: DisasterUpdate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> DisasterRead:
    """Apply a partial update; omitted fields are left untouched."""
    record = await entities.update(
        DISASTER,
        disaster_id,
        payload.model_dump(exclude_unset=True),
        caller.id,
    )
    return DisasterRead.model_validate(record)


@router.delete("/{disaster_id}", response_model=OkResponse)
async def delete_disaster(
    disaster_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> OkResponse:
    await entities.delete(DISASTER, disaster_id, caller.id)
    return OkResponse()


@router.get("/{disaster_id}/resources", response_model=list[NearbyResourceRead])
async def list_nearby_resources(
    disaster_id: UUID,
    lat: float | None = LAT_QUERY,
    lon: float | None = LON_QUERY,
    radius: float | None = RADIUS_QUERY,
    matcher: GeoMatcher = GEO_MATCHER_DEP,
    default_radius: float = DEFAULT_RADIUS_DEP,
) -> list[NearbyResourceRead]:
    """Resources of a disaster within `radius` meters of a point, nearest first."""
    if lat is None or lon is None:
        raise ValidationError("lat and lon required")
    matches = await matcher.nearby(
        disaster_id,
        {"lat": lat, "lng": lon},
        radius if radius is not None else default_radius,
    )
    return [NearbyResourceRead.model_validate(item) for item in matches]
