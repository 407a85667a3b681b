"""Schemas for citizen/official report payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from reliefhub.schemas.common import AuditEntryRead

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, AuditEntryRead)

VerificationStatus = Literal["pending", "verified", "rejected"]


class ReportCreate(SQLModel):
    """Payload for filing a report against a disaster; status starts as `pending`."""

    disaster_id: UUID
    content: str = Field(examples=["Need food in Lower East Side"])
    image_url: str | None = Field(default=None, examples=["https://example.com/flood.jpg"])


class ReportUpdate(SQLModel):
    content: str | None = None
    image_url: str | None = None
    verification_status: VerificationStatus | None = None


class ReportRead(SQLModel):
    id: UUID
    disaster_id: UUID
    reporter_id: str
    content: str
    image_url: str | None = None
    verification_status: VerificationStatus
    audit_trail: list[AuditEntryRead] = Field(default_factory=list)
    created_at: datetime
