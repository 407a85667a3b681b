"""Schemas for relief resource payloads and proximity results."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from reliefhub.schemas.common import AuditEntryRead, LocationInput

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, AuditEntryRead, LocationInput)


class ResourceCreate(SQLModel):
    disaster_id: UUID
    name: str = Field(examples=["Red Cross Shelter"])
    location_name: str | None = Field(default=None, examples=["Lower East Side, NYC"])
    location: LocationInput | None = None
    type: str | None = Field(default=None, examples=["shelter"])


class ResourceUpdate(SQLModel):
    """Partial update; omitted fields keep their stored values."""

    name: str | None = None
    location_name: str | None = None
    location: LocationInput | None = None
    type: str | None = None


class ResourceRead(SQLModel):
    id: UUID
    disaster_id: UUID
    name: str
    location_name: str | None = None
    location: str | None = None
    type: str | None = None
    audit_trail: list[AuditEntryRead] = Field(default_factory=list)
    created_at: datetime


class NearbyResourceRead(ResourceRead):
    """Resource annotated with its great-circle distance from the search center."""

    distance_meters: float = Field(examples=[1250.4])
