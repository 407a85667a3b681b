"""Durable record store interface and its SQLModel/async SQLAlchemy implementation.

Records cross this boundary as plain JSON-ready dicts keyed by column name.
Geographic points are opaque EWKT strings in the `location` column; the
SQLModel store mirrors them into indexed `latitude`/`longitude` columns so it
can answer radius queries itself.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from reliefhub.core.errors import NotFoundError, StoreError, StoreTimeoutError
from reliefhub.core.logging import get_logger
from reliefhub.models import CacheSlot, Disaster, Report, Resource
from reliefhub.services.geo import GeoPoint, bounding_box, haversine_meters

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import async_sessionmaker
    from sqlmodel.ext.asyncio.session import AsyncSession

    from reliefhub.models.base import QueryModel

logger = get_logger(__name__)

Record = dict[str, Any]
OrderBy = tuple[str, bool]
DEFAULT_ORDER: tuple[OrderBy, ...] = (("created_at", True),)
T = TypeVar("T")

TABLE_MODELS: dict[str, type[QueryModel]] = {
    "disasters": Disaster,
    "reports": Report,
    "resources": Resource,
    "cache": CacheSlot,
}
_STORE_ONLY_FIELDS = frozenset({"latitude", "longitude"})
_INVALID_ID = object()
_READ_OPERATIONS = frozenset({"get", "query", "geo_query"})


@dataclass(frozen=True)
class Contains:
    """Filter predicate: a list-valued column contains `value`."""

    value: object


class DurableStore(Protocol):
    """Transactional record storage with point and radius queries."""

    async def insert(self, table: str, record: Mapping[str, Any]) -> Record: ...

    async def get(self, table: str, record_id: object) -> Record | None: ...

    async def update(self, table: str, record_id: object, fields: Mapping[str, Any]) -> Record: ...

    async def upsert(self, table: str, record: Mapping[str, Any]) -> Record: ...

    async def delete(self, table: str, record_id: object) -> bool: ...

    async def query(
        self,
        table: str,
        filters: Mapping[str, object] | None = None,
        order: Sequence[OrderBy] = DEFAULT_ORDER,
    ) -> list[Record]: ...

    async def geo_query(
        self,
        table: str,
        disaster_id: object,
        center: GeoPoint,
        radius_meters: float,
    ) -> list[Record]: ...


def matches_filters(record: Mapping[str, Any], filters: Mapping[str, object]) -> bool:
    """Evaluate equality and `Contains` predicates against a plain record."""
    for key, expected in filters.items():
        actual = record.get(key)
        if isinstance(expected, Contains):
            if not isinstance(actual, list) or expected.value not in actual:
                return False
            continue
        if actual is None or expected is None:
            if actual is not expected:
                return False
        elif str(actual) != str(expected):
            return False
    return True


class SQLModelStore:
    """`DurableStore` over an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        timeout_seconds: float,
        models: Mapping[str, type[QueryModel]] | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._timeout_seconds = timeout_seconds
        self._models = dict(models or TABLE_MODELS)

    def _model(self, table: str) -> type[QueryModel]:
        model = self._models.get(table)
        if model is None:
            raise StoreError(f"Unknown table: {table}")
        return model

    async def _run(
        self,
        operation: str,
        table: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        async def _in_session() -> T:
            async with self._session_maker() as session:
                return await work(session)

        try:
            return await asyncio.wait_for(_in_session(), timeout=self._timeout_seconds)
        except TimeoutError as exc:
            logger.warning(
                "store.call.timeout",
                extra={
                    "operation": operation,
                    "table": table,
                    "timeout_seconds": self._timeout_seconds,
                },
            )
            raise StoreTimeoutError(
                f"Store {operation} on {table} timed out",
                detail=f"exceeded {self._timeout_seconds}s",
                retryable=operation in _READ_OPERATIONS,
            ) from exc
        except SQLAlchemyError as exc:
            logger.warning(
                "store.call.failed",
                extra={"operation": operation, "table": table, "error": str(exc)},
            )
            raise StoreError(
                f"Store {operation} on {table} failed",
                detail=str(exc),
                retryable=operation in _READ_OPERATIONS,
            ) from exc

    @staticmethod
    def _coerce(model: type[QueryModel], field_name: str, value: object) -> object:
        """Convert string identifiers to the column's UUID type when needed."""
        column = model.__table__.c.get(field_name)  # type: ignore[attr-defined]
        if column is None or value is None or not isinstance(value, str):
            return value
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value
        if python_type is uuid.UUID:
            try:
                return uuid.UUID(value)
            except ValueError:
                return _INVALID_ID
        return value

    def _primary_key(self, model: type[QueryModel], record_id: object) -> object:
        key_name = model.__table__.primary_key.columns.keys()[0]  # type: ignore[attr-defined]
        return self._coerce(model, key_name, record_id)

    @staticmethod
    def _prepare(model: type[QueryModel], fields: Mapping[str, Any]) -> dict[str, Any]:
        prepared = {key: value for key, value in fields.items() if key not in _STORE_ONLY_FIELDS}
        if "location" in prepared and "latitude" in model.model_fields:
            point = GeoPoint.from_ewkt(prepared["location"])
            prepared["latitude"] = point.lat if point else None
            prepared["longitude"] = point.lng if point else None
        return prepared

    @staticmethod
    def _to_record(row: QueryModel) -> Record:
        return row.model_dump(mode="json", exclude=set(_STORE_ONLY_FIELDS))

    async def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        model = self._model(table)
        prepared = self._prepare(model, record)

        async def _work(session: AsyncSession) -> Record:
            row = model.model_validate(prepared)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._to_record(row)

        return await self._run("insert", table, _work)

    async def get(self, table: str, record_id: object) -> Record | None:
        model = self._model(table)
        key = self._primary_key(model, record_id)
        if key is _INVALID_ID:
            return None

        async def _work(session: AsyncSession) -> Record | None:
            row = await session.get(model, key)
            return None if row is None else self._to_record(row)

        return await self._run("get", table, _work)

    async def update(self, table: str, record_id: object, fields: Mapping[str, Any]) -> Record:
        model = self._model(table)
        key = self._primary_key(model, record_id)
        if key is _INVALID_ID:
            raise NotFoundError(f"{table} record {record_id} not found")
        prepared = self._prepare(model, fields)

        async def _work(session: AsyncSession) -> Record | None:
            row = await session.get(model, key)
            if row is None:
                return None
            for name, value in prepared.items():
                setattr(row, name, self._coerce(model, name, value))
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._to_record(row)

        updated = await self._run("update", table, _work)
        if updated is None:
            raise NotFoundError(f"{table} record {record_id} not found")
        return updated

    async def upsert(self, table: str, record: Mapping[str, Any]) -> Record:
        model = self._model(table)
        prepared = self._prepare(model, record)

        async def _work(session: AsyncSession) -> Record:
            row = await session.merge(model.model_validate(prepared))
            await session.commit()
            await session.refresh(row)
            return self._to_record(row)

        return await self._run("upsert", table, _work)

    async def delete(self, table: str, record_id: object) -> bool:
        model = self._model(table)
        key = self._primary_key(model, record_id)
        if key is _INVALID_ID:
            return False

        async def _work(session: AsyncSession) -> bool:
            row = await session.get(model, key)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

        return await self._run("delete", table, _work)

    async def query(
        self,
        table: str,
        filters: Mapping[str, object] | None = None,
        order: Sequence[OrderBy] = DEFAULT_ORDER,
    ) -> list[Record]:
        model = self._model(table)
        sql_filters: dict[str, object] = {}
        # JSON containment differs per dialect; it is evaluated on loaded rows.
        contains_filters: dict[str, object] = {}
        for key, value in (filters or {}).items():
            if isinstance(value, Contains):
                contains_filters[key] = value
                continue
            coerced = self._coerce(model, key, value)
            if coerced is _INVALID_ID:
                return []
            sql_filters[key] = coerced

        query = model.objects.filter_by(**sql_filters)
        for field_name, descending in order:
            column = col(getattr(model, field_name))
            query = query.order_by(column.desc() if descending else column.asc())

        async def _work(session: AsyncSession) -> list[Record]:
            return [self._to_record(row) for row in await query.all(session)]

        records = await self._run("query", table, _work)
        if contains_filters:
            records = [item for item in records if matches_filters(item, contains_filters)]
        return records

    async def geo_query(
        self,
        table: str,
        disaster_id: object,
        center: GeoPoint,
        radius_meters: float,
    ) -> list[Record]:
        model = self._model(table)
        coerced_disaster_id = self._coerce(model, "disaster_id", disaster_id)
        if coerced_disaster_id is _INVALID_ID:
            return []
        box = bounding_box(center, radius_meters)
        latitude = col(model.latitude)  # type: ignore[attr-defined]
        longitude = col(model.longitude)  # type: ignore[attr-defined]
        query = model.objects.filter_by(disaster_id=coerced_disaster_id).filter(
            latitude.is_not(None),
            longitude.is_not(None),
            latitude >= box.min_lat,
            latitude <= box.max_lat,
        )
        if box.min_lng is not None and box.max_lng is not None:
            query = query.filter(longitude >= box.min_lng, longitude <= box.max_lng)

        async def _work(session: AsyncSession) -> list[Record]:
            matches: list[Record] = []
            for row in await query.all(session):
                point = GeoPoint(lat=row.latitude, lng=row.longitude)  # type: ignore[attr-defined]
                distance = haversine_meters(center, point)
                if distance <= radius_meters:
                    matches.append({**self._to_record(row), "distance_meters": distance})
            return matches

        matches = await self._run("geo_query", table, _work)
        matches.sort(key=lambda item: item["distance_meters"])
        return matches

