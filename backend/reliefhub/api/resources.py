"""Relief resource endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query

from reliefhub.api.deps import CALLER_DEP, ENTITIES_DEP
from reliefhub.core.errors import NotFoundError
from reliefhub.schemas.common import OkResponse
from reliefhub.schemas.resources import ResourceCreate, ResourceRead, ResourceUpdate
from reliefhub.services.entities import RESOURCE

if TYPE_CHECKING:
    from reliefhub.core.roles import Identity
    from reliefhub.services.entities import AuditedEntityStore

router = APIRouter(prefix="/resources", tags=["resources"])
DISASTER_QUERY = Query(default=None, description="Only resources for this disaster.")
TYPE_QUERY = Query(
    default=None,
    alias="type",
    description="Only resources of this type, e.g. `shelter`.",
)


@router.post("", response_model=ResourceRead)
async def create_resource(
    payload: ResourceCreate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> ResourceRead:
    record = await entities.create(RESOURCE, payload.model_dump(), caller.id)
    return ResourceRead.model_validate(record)


@router.get("", response_model=list[ResourceRead])
async def list_resources(
    disaster_id: UUID | None = DISASTER_QUERY,
    resource_type: str | None = TYPE_QUERY,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> list[ResourceRead]:
    records = await entities.list(RESOURCE, {"disaster_id": disaster_id, "type": resource_type})
    return [ResourceRead.model_validate(record) for record in records]


@router.get("/{resource_id}", response_model=ResourceRead)
async def get_resource(
    resource_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> ResourceRead:
    record = await entities.get(RESOURCE, resource_id)
    if record is None:
        raise NotFoundError(f"Resource {resource_id} not found")
    return ResourceRead.model_validate(record)


@router.put("/{resource_id}", response_model=ResourceRead)
async def update_resource(
    resource_id: UUID,
    payload: ResourceUpdate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> ResourceRead:
    record = await entities.update(
        RESOURCE,
        resource_id,
        payload.model_dump(exclude_unset=True),
        caller.id,
    )
    return ResourceRead.model_validate(record)


@router.delete("/{resource_id}", response_model=OkResponse)
async def delete_resource(
    resource_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> OkResponse:
    await entities.delete(RESOURCE, resource_id, caller.id)
    return OkResponse()
