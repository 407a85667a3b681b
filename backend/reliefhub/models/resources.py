"""Relief resource model (shelters, food banks, medical points)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from reliefhub.core.time import utcnow
from reliefhub.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Resource(QueryModel, table=True):
    """Relief resource located near a disaster."""

    __tablename__ = "resources"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    disaster_id: UUID = Field(foreign_key="disasters.id", index=True, ondelete="RESTRICT")
    name: str
    location_name: str | None = None
    location: str | None = None
    latitude: float | None = Field(default=None, index=True)
    longitude: float | None = Field(default=None, index=True)
    type: str | None = None
    audit_trail: list[dict[str, object]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
