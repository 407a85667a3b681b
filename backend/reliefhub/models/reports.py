"""Citizen/official report model attached to a disaster."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from reliefhub.core.time import utcnow
from reliefhub.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

VERIFICATION_STATUSES = frozenset({"pending", "verified", "rejected"})


class Report(QueryModel, table=True):
    """Free-text report, optionally with an image, awaiting verification."""

    __tablename__ = "reports"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    disaster_id: UUID = Field(foreign_key="disasters.id", index=True, ondelete="RESTRICT")
    reporter_id: str = Field(index=True)
    content: str
    image_url: str | None = None
    verification_status: str = Field(default="pending", index=True)
    audit_trail: list[dict[str, object]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
