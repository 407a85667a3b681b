"""Disaster record model with embedded audit trail."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from reliefhub.core.time import utcnow
from reliefhub.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Disaster(QueryModel, table=True):
    """Incident owned by the actor that reported it."""

    __tablename__ = "disasters"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    location_name: str | None = None
    # EWKT point `SRID=4326;POINT(lng lat)`; latitude/longitude mirror it for radius search.
    location: str | None = None
    latitude: float | None = Field(default=None, index=True)
    longitude: float | None = Field(default=None, index=True)
    description: str | None = None
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    owner_id: str = Field(index=True)
    audit_trail: list[dict[str, object]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
