from datetime import datetime
from typing import Any, Final

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from ..application.history_service import list_restore_history
from ..application.list_service import list_recoverable
from ..application.preview_service import preview_recovery
from ..application.restore_service import restore_records
from ..application.summary_service import summarize_recovery
from ..application.validation import (
    require_entity,
    validate_restore_request_with_logging,
)
from ..auth import AdminIdentity, get_admin_identity
from ..constants import API_PREFIX
from ..domain.entities import RecoveryRecord
from ..domain.registry import RECOVERY_ENTITIES, is_archive_backed_account_entity
from ..infrastructure.database.database import get_session
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_utils import log_recovery_action
from ..request_utils import get_client_ip

api_router: Final = APIRouter(
    prefix=f"{API_PREFIX}/recovery",
    tags=["recovery"],
    dependencies=[Depends(get_admin_identity)],
    responses={
        400: {"description": "Bad Request - Unknown entity or invalid input"},
        401: {"description": "Unauthorized - No administrator identity"},
        500: {"description": "Schema Unavailable - Table or column missing"},
    },
)


def get_introspector(session: Session = Depends(get_session)) -> SchemaIntrospector:
    """One introspector per request, so schema changes show up immediately."""
    return SchemaIntrospector(session)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Request Models
class PreviewRequestBody(CamelModel):
    """Ids to classify before a restore."""

    entity: str | None = Field(
        None, description="Recovery entity key", examples=["student"]
    )
    ids: list[Any] | None = Field(
        None,
        description="Record ids (1-200, case preserved, duplicates collapse)",
        examples=[["12", "15"]],
    )


class RestoreRequestBody(PreviewRequestBody):
    """Restore instruction with dual confirmation."""

    reason: str | None = Field(
        None, max_length=2000, description="Why the records are being restored"
    )
    approval_note: str | None = Field(
        None, max_length=2000, description="Who approved the restore and how"
    )
    confirm_phrase: str | None = Field(
        None, description="Must be RESTORE (case-insensitive)", examples=["RESTORE"]
    )


# Response Models
class RecordResponse(CamelModel):
    id: str | int = Field(description="Primary id of the soft-deleted row")
    occurred_at: datetime | None = Field(description="When the row was removed")
    reason: str | None = Field(description="Recorded removal reason")
    label: str | None = Field(description="First non-empty label column value")
    fields: dict[str, Any] = Field(description="All label column values")


class BlockedRecordResponse(RecordResponse):
    conflict: str = Field(description="Why restoring this row is unsafe")


class PaginationResponse(CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class ListResponse(CamelModel):
    entity: str
    pagination: PaginationResponse
    records: list[RecordResponse]


class PreviewResponse(CamelModel):
    entity: str
    requested_ids: list[str]
    recoverable: list[RecordResponse]
    not_recoverable: list[BlockedRecordResponse]
    not_found: list[str]


class RestoreResponse(CamelModel):
    entity: str
    restored_count: int
    restored_ids: list[str | int]
    skipped_ids: list[str]
    reason: str
    approval_note: str


class EntityResponse(CamelModel):
    key: str
    table: str
    mode: str
    archive_backed: bool


class EntitiesResponse(CamelModel):
    entities: list[EntityResponse]


class EntityCountResponse(CamelModel):
    entity: str
    table: str
    mode: str
    count: int


class UnavailableEntityResponse(CamelModel):
    entity: str
    reason: str


class RecentRecordResponse(RecordResponse):
    entity: str


class SummaryResponse(CamelModel):
    total: int
    counts: list[EntityCountResponse]
    unavailable: list[UnavailableEntityResponse]
    recent: list[RecentRecordResponse]


class HistoryEntryResponse(CamelModel):
    log_id: int | None
    entity: str
    action: str
    user_id: str
    ip_address: str | None
    created_at: datetime
    details: Any = None


class HistoryResponse(CamelModel):
    pagination: PaginationResponse
    entries: list[HistoryEntryResponse]


def _record_fields(record: RecoveryRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "occurred_at": record.occurred_at,
        "reason": record.reason,
        "label": record.label,
        "fields": record.fields,
    }


@api_router.get(
    "/entities",
    summary="List recoverable entity types",
)
def api_list_entities() -> EntitiesResponse:
    return EntitiesResponse(
        entities=[
            EntityResponse(
                key=entity.key,
                table=entity.table,
                mode=entity.mode.value,
                archive_backed=is_archive_backed_account_entity(entity.key),
            )
            for entity in RECOVERY_ENTITIES
        ]
    )


@api_router.get(
    "/summary",
    summary="Recoverable counts and recent removals",
    description="""
    Counts recoverable rows for every registered entity and lists the most
    recent removals (at most three per entity, twenty overall).

    Entities whose table or columns are missing are reported under
    `unavailable` instead of failing the request.
    """,
)
def api_summary(
    *,
    session: Session = Depends(get_session),
    introspector: SchemaIntrospector = Depends(get_introspector),
) -> SummaryResponse:
    summary = summarize_recovery(session, introspector)
    return SummaryResponse(
        total=summary.total,
        counts=[
            EntityCountResponse(
                entity=item.entity, table=item.table, mode=item.mode, count=item.count
            )
            for item in summary.counts
        ],
        unavailable=[
            UnavailableEntityResponse(entity=item.entity, reason=item.reason)
            for item in summary.unavailable
        ],
        recent=[
            RecentRecordResponse(entity=item.entity, **_record_fields(item.record))
            for item in summary.recent
        ],
    )


@api_router.get(
    "/list",
    summary="Page through soft-deleted records",
    description="""
    Lists rows of one entity that are soft-deleted, archived or voided,
    newest first. `query` matches the id and label columns as a substring.

    Invalid `page` / `pageSize` values fall back to 1 and 20; the page size
    is capped at 100.
    """,
)
def api_list(
    *,
    session: Session = Depends(get_session),
    introspector: SchemaIntrospector = Depends(get_introspector),
    entity: str | None = Query(None, description="Recovery entity key"),
    page: str | None = Query(None, description="1-based page number"),
    page_size: str | None = Query(None, alias="pageSize", description="Rows per page"),
    query: str | None = Query(None, description="Substring search"),
) -> ListResponse:
    config = require_entity(entity)
    result = list_recoverable(session, introspector, config, page, page_size, query)
    return ListResponse(
        entity=config.key,
        pagination=PaginationResponse(
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            total_pages=result.total_pages,
        ),
        records=[RecordResponse(**_record_fields(record)) for record in result.records],
    )


@api_router.post(
    "/preview",
    summary="Dry-run a restore",
    description="""
    Classifies every requested id as `recoverable`, `notRecoverable`
    (restoring would conflict with live data) or `notFound`. Nothing is
    written.
    """,
)
def api_preview(
    *,
    session: Session = Depends(get_session),
    introspector: SchemaIntrospector = Depends(get_introspector),
    identity: AdminIdentity = Depends(get_admin_identity),
    body: PreviewRequestBody,
) -> PreviewResponse:
    config = require_entity(body.entity)
    requested, result = preview_recovery(session, introspector, config, body.ids)
    log_recovery_action(
        "preview",
        config.key,
        identity.user_id,
        requested=len(requested),
        blocked=len(result.not_recoverable),
    )
    return PreviewResponse(
        entity=config.key,
        requested_ids=requested,
        recoverable=[RecordResponse(**_record_fields(r)) for r in result.recoverable],
        not_recoverable=[
            BlockedRecordResponse(**_record_fields(b.record), conflict=b.conflict)
            for b in result.not_recoverable
        ],
        not_found=result.not_found,
    )


@api_router.post(
    "/restore",
    summary="Restore soft-deleted records",
    description="""
    Restores the requested ids in one audited transaction.

    Requires a `reason`, an `approvalNote` and `confirmPhrase` equal to
    `RESTORE`. If any id would conflict with live data the whole batch is
    rejected with 409 and nothing changes. Ids that are no longer in the
    recovery pool are reported in `skippedIds`.
    """,
    responses={409: {"description": "Conflict - Batch contains blocked ids"}},
)
def api_restore(
    *,
    request: Request,
    session: Session = Depends(get_session),
    introspector: SchemaIntrospector = Depends(get_introspector),
    identity: AdminIdentity = Depends(get_admin_identity),
    body: RestoreRequestBody,
) -> RestoreResponse:
    config = require_entity(body.entity)
    restore_request = validate_restore_request_with_logging(
        body.ids, body.reason, body.approval_note, body.confirm_phrase
    )
    result = restore_records(
        session,
        introspector,
        config,
        restore_request,
        actor=identity.user_id,
        ip_address=get_client_ip(request),
    )
    return RestoreResponse(
        entity=config.key,
        restored_count=result.restored_count,
        restored_ids=result.restored_ids,
        skipped_ids=result.skipped_ids,
        reason=restore_request.reason,
        approval_note=restore_request.approval_note,
    )


@api_router.get(
    "/history",
    summary="Audited restores",
)
def api_history(
    *,
    session: Session = Depends(get_session),
    page: str | None = Query(None),
    page_size: str | None = Query(None, alias="pageSize"),
    entity: str | None = Query(None, description="Only restores of this entity"),
) -> HistoryResponse:
    history = list_restore_history(session, page, page_size, entity)
    return HistoryResponse(
        pagination=PaginationResponse(
            page=history.page,
            page_size=history.page_size,
            total=history.total,
            total_pages=history.total_pages,
        ),
        entries=[
            HistoryEntryResponse(
                log_id=entry.log_id,
                entity=entry.entity,
                action=entry.action,
                user_id=entry.user_id,
                ip_address=entry.ip_address,
                created_at=entry.created_at,
                details=entry.details,
            )
            for entry in history.entries
        ],
    )
