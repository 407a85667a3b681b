"""Time helpers shared by models and services."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (database convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def isoformat(value: datetime) -> str:
    """Render a datetime as ISO-8601 with an explicit UTC offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_instant(raw: object) -> datetime | None:
    """Parse a stored instant (datetime or ISO string) into a naive UTC datetime."""
    if isinstance(raw, datetime):
        return as_naive_utc(raw)
    if isinstance(raw, str):
        try:
            return as_naive_utc(datetime.fromisoformat(raw))
        except ValueError:
            return None
    return None
