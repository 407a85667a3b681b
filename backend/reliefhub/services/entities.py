"""Audited create/update/delete/list for disasters, reports, and resources.

Every successful mutation appends exactly one audit entry to the record's
embedded trail before the write is issued. Change events are emitted only
after the store call succeeded.

Trail appends are read-modify-write: two concurrent updates of one record can
lose an interleaved entry unless the caller serializes them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from reliefhub.core.errors import ConflictError, NotFoundError, StoreError, ValidationError
from reliefhub.core.logging import get_logger
from reliefhub.core.time import isoformat, utcnow
from reliefhub.db.store import Contains
from reliefhub.models.reports import VERIFICATION_STATUSES
from reliefhub.services.fanout import ChangeEvent
from reliefhub.services.geo import GeoPoint

if TYPE_CHECKING:
    from datetime import datetime

    from reliefhub.db.store import DurableStore, Record
    from reliefhub.services.fanout import ChangeSink, EntityKindName, Operation

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntityKind:
    """Static description of one audited entity type."""

    name: EntityKindName
    table: str
    required: tuple[str, ...]
    fields: frozenset[str]
    owner_field: str | None
    filters: frozenset[str]
    references_disaster: bool = False


DISASTER = EntityKind(
    name="disaster",
    table="disasters",
    required=("title",),
    fields=frozenset({"title", "location_name", "location", "description", "tags"}),
    owner_field="owner_id",
    filters=frozenset({"tags", "owner_id"}),
)
REPORT = EntityKind(
    name="report",
    table="reports",
    required=("disaster_id", "content"),
    fields=frozenset({"disaster_id", "content", "image_url", "verification_status"}),
    owner_field="reporter_id",
    filters=frozenset({"disaster_id", "verification_status", "reporter_id"}),
    references_disaster=True,
)
RESOURCE = EntityKind(
    name="resource",
    table="resources",
    required=("disaster_id", "name"),
    fields=frozenset({"disaster_id", "name", "location_name", "location", "type"}),
    owner_field=None,
    filters=frozenset({"disaster_id", "type"}),
    references_disaster=True,
)
ENTITY_KINDS: dict[str, EntityKind] = {kind.name: kind for kind in (DISASTER, REPORT, RESOURCE)}


def resolve_kind(kind: EntityKind | str) -> EntityKind:
    if isinstance(kind, EntityKind):
        return kind
    resolved = ENTITY_KINDS.get(kind)
    if resolved is None:
        raise ValidationError(f"Unknown entity kind: {kind}")
    return resolved


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _normalize_tags(raw: object) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("tags must be a list of strings")
    tags: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ValidationError("tags must be a list of strings")
        cleaned = item.strip()
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


class AuditedEntityStore:
    """Entity mutations with an embedded, append-only audit trail."""

    def __init__(
        self,
        store: DurableStore,
        sink: ChangeSink | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._sink = sink
        self._clock = clock

    def _audit_entry(self, action: str, actor_id: str) -> dict[str, str]:
        return {"action": action, "actor_id": actor_id, "timestamp": isoformat(self._clock())}

    @staticmethod
    def _require_actor(actor_id: object) -> str:
        if not isinstance(actor_id, str) or not actor_id.strip():
            raise ValidationError("actor_id is required")
        return actor_id.strip()

    @staticmethod
    def _require_mapping(payload: object) -> Mapping[str, Any]:
        if not isinstance(payload, Mapping):
            raise ValidationError("payload must be an object")
        return payload

    def _clean_fields(
        self,
        kind: EntityKind,
        payload: Mapping[str, Any],
        *,
        partial: bool,
    ) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for name, value in payload.items():
            if name not in kind.fields:
                continue
            if name in kind.required:
                if _is_blank(value):
                    raise ValidationError(f"{name} is required")
                cleaned[name] = value.strip() if isinstance(value, str) else str(value)
            elif name == "location":
                if value is None:
                    # Only a supplied {lat, lng} pair changes the stored point.
                    if not partial:
                        cleaned[name] = None
                    continue
                cleaned[name] = GeoPoint.from_mapping(value).to_ewkt()
            elif name == "tags":
                cleaned[name] = _normalize_tags(value)
            elif name == "verification_status":
                if value not in VERIFICATION_STATUSES:
                    allowed = ", ".join(sorted(VERIFICATION_STATUSES))
                    raise ValidationError(f"verification_status must be one of: {allowed}")
                cleaned[name] = value
            else:
                cleaned[name] = value

        if not partial:
            for name in kind.required:
                if name not in cleaned:
                    raise ValidationError(f"{name} is required")
        return cleaned

    async def _ensure_disaster(self, disaster_id: object) -> None:
        if await self._store.get(DISASTER.table, disaster_id) is None:
            raise NotFoundError(f"Disaster {disaster_id} not found")

    async def _ensure_no_children(self, disaster_id: object) -> None:
        for child in (REPORT, RESOURCE):
            if await self._store.query(child.table, {"disaster_id": disaster_id}):
                raise ConflictError(
                    f"Disaster {disaster_id} still has {child.table}",
                    detail=f"delete its {child.table} first",
                )

    def _emit(self, kind: EntityKind, operation: Operation, payload: dict[str, Any]) -> None:
        if self._sink is None:
            return
        event = ChangeEvent(entity_kind=kind.name, operation=operation, payload=payload)
        try:
            self._sink.publish(event)
        except Exception:
            logger.exception(
                "entities.change_event.publish_failed",
                extra={"entity_kind": kind.name, "operation": operation},
            )

    async def create(
        self,
        kind: EntityKind | str,
        payload: Mapping[str, Any],
        actor_id: str,
    ) -> Record:
        """Validate and persist a new entity carrying a single `create` entry."""
        entity_kind = resolve_kind(kind)
        actor = self._require_actor(actor_id)
        fields = self._clean_fields(entity_kind, self._require_mapping(payload), partial=False)
        if entity_kind.name == "disaster":
            fields.setdefault("tags", [])
        if entity_kind.name == "report":
            fields.setdefault("verification_status", "pending")
        if entity_kind.references_disaster:
            await self._ensure_disaster(fields["disaster_id"])

        record: dict[str, Any] = {
            **fields,
            "audit_trail": [self._audit_entry("create", actor)],
            "created_at": self._clock(),
        }
        if entity_kind.owner_field is not None:
            record[entity_kind.owner_field] = actor

        created = await self._store.insert(entity_kind.table, record)
        logger.info(
            "entities.created",
            extra={"entity_kind": entity_kind.name, "id": created.get("id"), "actor_id": actor},
        )
        self._emit(entity_kind, "create", created)
        return created

    async def get(self, kind: EntityKind | str, entity_id: object) -> Record | None:
        entity_kind = resolve_kind(kind)
        return await self._store.get(entity_kind.table, entity_id)

    async def _require(self, kind: EntityKind, entity_id: object) -> Record:
        current = await self._store.get(kind.table, entity_id)
        if current is None:
            raise NotFoundError(f"{kind.name.capitalize()} {entity_id} not found")
        return current

    async def update(
        self,
        kind: EntityKind | str,
        entity_id: object,
        partial_payload: Mapping[str, Any],
        actor_id: str,
    ) -> Record:
        """Merge the supplied fields over the stored entity and append an `update` entry."""
        entity_kind = resolve_kind(kind)
        actor = self._require_actor(actor_id)
        changes = self._clean_fields(
            entity_kind,
            self._require_mapping(partial_payload),
            partial=True,
        )
        current = await self._require(entity_kind, entity_id)
        if (
            entity_kind.references_disaster
            and "disaster_id" in changes
            and changes["disaster_id"] != str(current.get("disaster_id"))
        ):
            await self._ensure_disaster(changes["disaster_id"])

        trail = [*(current.get("audit_trail") or []), self._audit_entry("update", actor)]
        updated = await self._store.update(
            entity_kind.table,
            entity_id,
            {**changes, "audit_trail": trail},
        )
        logger.info(
            "entities.updated",
            extra={
                "entity_kind": entity_kind.name,
                "id": updated.get("id"),
                "actor_id": actor,
                "fields": sorted(changes),
            },
        )
        self._emit(entity_kind, "update", updated)
        return updated

    async def delete(self, kind: EntityKind | str, entity_id: object, actor_id: str) -> None:
        """Record a `delete` entry, then remove the row.

        The audit update is persisted first, so a failed physical delete still
        leaves the attempt on the trail.
        A disaster that still has reports or resources is refused before any
        entry is written.
        """
        entity_kind = resolve_kind(kind)
        actor = self._require_actor(actor_id)
        current = await self._require(entity_kind, entity_id)
        if entity_kind is DISASTER:
            await self._ensure_no_children(entity_id)
        trail = [*(current.get("audit_trail") or []), self._audit_entry("delete", actor)]
        await self._store.update(entity_kind.table, entity_id, {"audit_trail": trail})

        removed = await self._store.delete(entity_kind.table, entity_id)
        if not removed:
            raise StoreError(
                f"{entity_kind.name.capitalize()} {entity_id} could not be deleted",
                detail="row disappeared before removal",
            )
        logger.info(
            "entities.deleted",
            extra={"entity_kind": entity_kind.name, "id": current.get("id"), "actor_id": actor},
        )
        self._emit(entity_kind, "delete", {"id": current.get("id"), "audit_trail": trail})

    async def list(
        self,
        kind: EntityKind | str,
        filters: Mapping[str, object] | None = None,
    ) -> Sequence[Record]:
        """Snapshot of matching entities, most recently created first."""
        entity_kind = resolve_kind(kind)
        predicates: dict[str, object] = {}
        for name, value in (filters or {}).items():
            if value is None:
                continue
            if name not in entity_kind.filters:
                raise ValidationError(f"Cannot filter {entity_kind.table} by {name}")
            if name == "verification_status" and value not in VERIFICATION_STATUSES:
                allowed = ", ".join(sorted(VERIFICATION_STATUSES))
                raise ValidationError(f"verification_status must be one of: {allowed}")
            predicates[name] = Contains(value) if name == "tags" else value
        return await self._store.query(entity_kind.table, predicates)
