"""Shared SQLModel base with a small chainable query manager."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar

from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

ModelT = TypeVar("ModelT", bound="QueryModel")


@dataclass(frozen=True)
class ModelQuery(Generic[ModelT]):
    """Immutable query builder bound to one table model."""

    model: type[ModelT]
    criteria: tuple[Any, ...] = ()
    ordering: tuple[Any, ...] = ()
    offset_value: int | None = None
    limit_value: int | None = None

    def _replace(self, **changes: Any) -> Self:
        return replace(self, **changes)

    def by_id(self, value: object) -> Self:
        return self.filter_by(id=value)

    def filter_by(self, **values: object) -> Self:
        clauses = tuple(col(getattr(self.model, key)) == value for key, value in values.items())
        return self._replace(criteria=self.criteria + clauses)

    def filter(self, *clauses: Any) -> Self:
        return self._replace(criteria=self.criteria + clauses)

    def order_by(self, *clauses: Any) -> Self:
        return self._replace(ordering=self.ordering + clauses)

    def offset(self, value: int) -> Self:
        return self._replace(offset_value=value)

    def limit(self, value: int) -> Self:
        return self._replace(limit_value=value)

    def statement(self) -> Any:
        stmt = select(self.model)
        for clause in self.criteria:
            stmt = stmt.where(clause)
        if self.ordering:
            stmt = stmt.order_by(*self.ordering)
        if self.offset_value is not None:
            stmt = stmt.offset(self.offset_value)
        if self.limit_value is not None:
            stmt = stmt.limit(self.limit_value)
        return stmt

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement()))

    async def first(self, session: AsyncSession) -> ModelT | None:
        result = await session.exec(self.limit(1).statement())
        return result.first()


class _ObjectsDescriptor:
    def __get__(self, instance: object, owner: type[ModelT]) -> ModelQuery[ModelT]:
        return ModelQuery(model=owner)


class QueryModel(SQLModel):
    """Base class for table models exposing `Model.objects` query helpers."""

    objects: ClassVar[_ObjectsDescriptor] = _ObjectsDescriptor()
