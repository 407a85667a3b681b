"""Report endpoints: file, review, and list reports for a disaster."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query

from reliefhub.api.deps import CALLER_DEP, ENTITIES_DEP
from reliefhub.core.errors import NotFoundError
from reliefhub.schemas.common import OkResponse
from reliefhub.schemas.reports import ReportCreate, ReportRead, ReportUpdate, VerificationStatus
from reliefhub.services.entities import REPORT

if TYPE_CHECKING:
    from reliefhub.core.roles import Identity
    from reliefhub.services.entities import AuditedEntityStore

router = APIRouter(prefix="/reports", tags=["reports"])
DISASTER_QUERY = Query(default=None, description="Only reports for this disaster.")
STATUS_QUERY = Query(default=None, description="Only reports with this verification status.")


@router.post("", response_model=ReportRead)
async def create_report(
    payload: ReportCreate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> ReportRead:
    """File a report; it starts out `pending` verification."""
    record = await entities.create(REPORT, payload.model_dump(), caller.id)
    return ReportRead.model_validate(record)


@router.get("", response_model=list[ReportRead])
async def list_reports(
    disaster_id: UUID | None = DISASTER_QUERY,
    verification_status: VerificationStatus | None = STATUS_QUERY,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> list[ReportRead]:
    records = await entities.list(
        REPORT,
        {"disaster_id": disaster_id, "verification_status": verification_status},
    )
    return [ReportRead.model_validate(record) for record in records]


@router.get("/{report_id}", response_model=ReportRead)
async def get_report(
    report_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
) -> ReportRead:
    record = await entities.get(REPORT, report_id)
    if record is None:
        raise NotFoundError(f"Report {report_id} not found")
    return ReportRead.model_validate(record)


@router.put("/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: UUID,
    payload: ReportUpdate,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> ReportRead:
    """Partially update a report, e.g. to record a verification decision."""
    record = await entities.update(
        REPORT,
        report_id,
        payload.model_dump(exclude_unset=True),
        caller.id,
    )
    return ReportRead.model_validate(record)


@router.delete("/{report_id}", response_model=OkResponse)
async def delete_report(
    report_id: UUID,
    entities: AuditedEntityStore = ENTITIES_DEP,
    caller: Identity = CALLER_DEP,
) -> OkResponse:
    await entities.delete(REPORT, report_id, caller.id)
    return OkResponse()
