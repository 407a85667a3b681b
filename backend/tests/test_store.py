# ruff: noqa: INP001
"""SQLModelStore behavior against an in-memory SQLite database."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from reliefhub import models  # noqa: F401
from reliefhub.core.errors import NotFoundError, StoreError, StoreTimeoutError
from reliefhub.db.store import TABLE_MODELS, Contains, SQLModelStore, matches_filters
from reliefhub.services.geo import GeoPoint

NYC = GeoPoint(lat=40.7128, lng=-74.0060)


async def _make_store() -> SQLModelStore:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return SQLModelStore(session_maker, timeout_seconds=5)


async def _insert_disaster(store: SQLModelStore, **fields: object) -> dict[str, object]:
    record: dict[str, object] = {"title": "Flood", "owner_id": "citizen1", **fields}
    return await store.insert("disasters", record)


@pytest.mark.asyncio
async def test_insert_assigns_id_and_hides_coordinate_columns() -> None:
    store = await _make_store()

    created = await _insert_disaster(store, location=NYC.to_ewkt(), tags=["flood"])

    assert isinstance(created["id"], str) and created["id"]
    assert created["location"] == NYC.to_ewkt()
    assert created["tags"] == ["flood"]
    assert created["audit_trail"] == []
    assert "latitude" not in created and "longitude" not in created
    assert await store.get("disasters", created["id"]) == created


@pytest.mark.asyncio
async def test_get_returns_none_for_missing_or_malformed_ids() -> None:
    store = await _make_store()

    assert await store.get("disasters", "3f7c1e8e-0000-4000-8000-000000000000") is None
    assert await store.get("disasters", "not-a-uuid") is None


@pytest.mark.asyncio
async def test_update_merges_fields_and_rejects_missing_rows() -> None:
    store = await _make_store()
    created = await _insert_disaster(store, description="Initial", location=NYC.to_ewkt())

    updated = await store.update("disasters", created["id"], {"title": "Flood B"})

    assert updated["title"] == "Flood B"
    assert updated["description"] == "Initial"
    assert updated["location"] == NYC.to_ewkt()
    with pytest.raises(NotFoundError):
        await store.update("disasters", "3f7c1e8e-0000-4000-8000-000000000000", {"title": "x"})
    with pytest.raises(NotFoundError):
        await store.update("disasters", "garbage", {"title": "x"})


@pytest.mark.asyncio
async def test_delete_reports_whether_a_row_was_removed() -> None:
    store = await _make_store()
    created = await _insert_disaster(store)

    assert await store.delete("disasters", created["id"]) is True
    assert await store.delete("disasters", created["id"]) is False
    assert await store.get("disasters", created["id"]) is None


@pytest.mark.asyncio
async def test_upsert_replaces_cache_slot_value() -> None:
    store = await _make_store()
    expires_at = datetime(2030, 1, 1)

    await store.upsert("cache", {"key": "k", "value": {"n": 1}, "expires_at": expires_at})
    await store.upsert("cache", {"key": "k", "value": {"n": 2}, "expires_at": expires_at})

    slot = await store.get("cache", "k")
    assert slot is not None
    assert slot["value"] == {"n": 2}


@pytest.mark.asyncio
async def test_query_filters_orders_newest_first_and_checks_tag_containment() -> None:
    store = await _make_store()
    base = datetime(2026, 1, 1)
    await _insert_disaster(store, title="old", tags=["flood"], created_at=base)
    await _insert_disaster(store, title="new", tags=["flood", "urgent"], created_at=base + timedelta(hours=2))
    await _insert_disaster(
        store,
        title="other",
        tags=["fire"],
        owner_id="citizen2",
        created_at=base + timedelta(hours=1),
    )

    everything = await store.query("disasters")
    flood = await store.query("disasters", {"tags": Contains("flood")})
    mine = await store.query("disasters", {"owner_id": "citizen1"})

    assert [item["title"] for item in everything] == ["new", "other", "old"]
    assert [item["title"] for item in flood] == ["new", "old"]
    assert [item["title"] for item in mine] == ["new", "old"]
    assert await store.query("reports", {"disaster_id": "nope"}) == []


@pytest.mark.asyncio
async def test_geo_query_keeps_disaster_scope_and_radius() -> None:
    store = await _make_store()
    disaster = await _insert_disaster(store)
    other = await _insert_disaster(store, title="Other")
    for name, disaster_id, point in (
        ("close", disaster["id"], GeoPoint(lat=40.7138, lng=-74.0060)),
        ("mid", disaster["id"], GeoPoint(lat=40.7578, lng=-73.9855)),
        ("far", disaster["id"], GeoPoint(lat=40.9, lng=-74.0060)),
        ("foreign", other["id"], NYC),
    ):
        await store.insert(
            "resources",
            {"name": name, "disaster_id": disaster_id, "location": point.to_ewkt()},
        )
    await store.insert("resources", {"name": "nowhere", "disaster_id": disaster["id"]})

    matches = await store.geo_query("resources", disaster["id"], NYC, 10_000)

    assert [item["name"] for item in matches] == ["close", "mid"]
    assert matches[0]["distance_meters"] < matches[1]["distance_meters"] <= 10_000


def test_matches_filters_compares_as_strings_and_handles_none() -> None:
    record = {"disaster_id": "abc", "tags": ["a"], "image_url": None}

    assert matches_filters(record, {"disaster_id": "abc", "tags": Contains("a")})
    assert matches_filters(record, {"image_url": None})
    assert not matches_filters(record, {"tags": Contains("b")})
    assert not matches_filters(record, {"image_url": "x"})


class _SlowSessionMaker:
    def __call__(self) -> _SlowSessionMaker:
        return self

    async def __aenter__(self) -> None:
        await asyncio.sleep(1)

    async def __aexit__(self, *exc_info: object) -> None:
        return None


class _BrokenSessionMaker:
    def __call__(self) -> _BrokenSessionMaker:
        return self

    async def __aenter__(self) -> None:
        raise SQLAlchemyError("connection refused")

    async def __aexit__(self, *exc_info: object) -> None:
        return None


@pytest.mark.asyncio
async def test_slow_calls_raise_store_timeout() -> None:
    store = SQLModelStore(_SlowSessionMaker(), timeout_seconds=0.01)  # type: ignore[arg-type]

    with pytest.raises(StoreTimeoutError) as exc_info:
        await store.query("disasters")
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_driver_errors_become_store_errors_with_detail() -> None:
    store = SQLModelStore(_BrokenSessionMaker(), timeout_seconds=1)  # type: ignore[arg-type]

    with pytest.raises(StoreError) as exc_info:
        await store.get("disasters", "3f7c1e8e-0000-4000-8000-000000000000")
    assert not isinstance(exc_info.value, StoreTimeoutError)
    assert exc_info.value.detail == "connection refused"
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_unknown_table_is_a_store_error() -> None:
    store = await _make_store()

    with pytest.raises(StoreError, match="Unknown table"):
        await store.query("volunteers")


@pytest.mark.asyncio
async def test_failed_writes_are_not_retryable() -> None:
    store = SQLModelStore(_BrokenSessionMaker(), timeout_seconds=1)  # type: ignore[arg-type]
    slow = SQLModelStore(_SlowSessionMaker(), timeout_seconds=0.01)  # type: ignore[arg-type]

    with pytest.raises(StoreError) as write_info:
        await store.insert("disasters", {"title": "Flood", "owner_id": "citizen1"})
    with pytest.raises(StoreTimeoutError) as timeout_info:
        await slow.delete("disasters", "3f7c1e8e-0000-4000-8000-000000000000")

    assert write_info.value.retryable is False
    assert timeout_info.value.retryable is False


def test_datetime_columns_store_naive_utc() -> None:
    for table, model in TABLE_MODELS.items():
        for column in model.__table__.columns:  # type: ignore[attr-defined]
            if column.name in {"created_at", "expires_at"}:
                assert type(column.type) is DateTime, table
                assert column.type.timezone is False, table


@pytest.mark.asyncio
async def test_naive_timestamps_round_trip() -> None:
    store = await _make_store()
    created_at = datetime(2026, 10, 19, 8, 30, 15)

    created = await _insert_disaster(store, created_at=created_at)
    await store.upsert("cache", {"key": "k", "value": 1, "expires_at": created_at})

    assert created["created_at"] == "2026-10-19T08:30:15"
    slot = await store.get("cache", "k")
    assert slot is not None
    assert slot["expires_at"] == "2026-10-19T08:30:15"
