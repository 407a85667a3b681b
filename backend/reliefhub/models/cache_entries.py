"""Cache-aside slot model for expensive enrichment results."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field

from reliefhub.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class CacheSlot(QueryModel, table=True):
    """Stored cache value; rows past `expires_at` are logically absent."""

    __tablename__ = "cache"  # pyright: ignore[reportAssignmentType]

    key: str = Field(primary_key=True)
    value: Any = Field(default=None, sa_column=Column(JSON, nullable=True))
    expires_at: datetime = Field(index=True, sa_type=DateTime)
