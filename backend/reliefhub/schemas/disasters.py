"""Schemas for disaster create, update, and read payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from reliefhub.schemas.common import AuditEntryRead, LocationInput

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, AuditEntryRead, LocationInput)


class DisasterBase(SQLModel):
    location_name: str | None = Field(default=None, examples=["Manhattan, NYC"])
    description: str | None = Field(default=None, examples=["Heavy flooding in Manhattan"])


class DisasterCreate(DisasterBase):
    """Payload for recording a new disaster."""

    title: str = Field(examples=["NYC Flood"])
    location: LocationInput | None = None
    tags: list[str] = Field(default_factory=list, examples=[["flood", "urgent"]])


class DisasterUpdate(SQLModel):
    """Partial update; omitted fields keep their stored values."""

    title: str | None = None
    location_name: str | None = None
    location: LocationInput | None = None
    description: str | None = None
    tags: list[str] | None = None


class DisasterRead(DisasterBase):
    id: UUID
    title: str
    location: str | None = Field(
        default=None,
        description="Stored point as EWKT, e.g. `SRID=4326;POINT(-74.006 40.7128)`.",
    )
    tags: list[str] = Field(default_factory=list)
    owner_id: str
    audit_trail: list[AuditEntryRead] = Field(default_factory=list)
    created_at: datetime
