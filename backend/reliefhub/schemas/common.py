"""Shared schema fragments: coordinates, audit entries, and simple acks."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class LocationInput(SQLModel):
    """Coordinate pair supplied by clients; converted to a stored point server-side."""

    lat: float = Field(description="Latitude in decimal degrees.", examples=[40.7128])
    lng: float = Field(description="Longitude in decimal degrees.", examples=[-74.006])


class AuditEntryRead(SQLModel):
    """One immutable entry of an entity's embedded audit trail."""

    action: Literal["create", "update", "delete"]
    actor_id: str = Field(examples=["citizen1"])
    timestamp: datetime


class OkResponse(SQLModel):
    """Acknowledgement body for operations without a resource payload."""

    success: bool = True
