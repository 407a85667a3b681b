"""Structured error payload returned by every failing API call."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message, or field errors for schema validation failures.",
        examples=["Disaster 3f0c... not found"],
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable error code.",
        examples=["not_found", "provider_timeout", "store_error"],
    )
    retryable: bool | None = Field(
        default=None,
        description="Whether the failure is transient and safe to retry for reads.",
    )
    details: str | None = Field(
        default=None,
        description="Underlying store or provider failure detail, when available.",
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
