from typing import Any, Final

from sqlmodel import Session

from ..domain.constants import RESTORE_ACTION_PREFIX
from ..domain.entities import RecoveryEntityConfig, RestoreRequest, RestoreResult
from ..domain.exceptions import RestoreConflictError
from ..infrastructure.database.query_builder import RecoveryQueryBuilder, RecoverySource
from ..infrastructure.database.repositories import AuditLogRepository
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from ..logging_utils import log_recovery_action
from ..metrics import record_restore, record_restore_rejection
from .archive_accounts import restore_archived_accounts
from .preview_service import classify_ids
from .sources import resolve_recovery_source

logger: Final = get_logger(__name__)


def _restore_flagged(
    session: Session, source: RecoverySource, ids: list[Any]
) -> list[Any]:
    """Clear the mode flag row by row so the restored ids are exact."""
    builder = RecoveryQueryBuilder(source)
    connection = session.connection()
    restored: list[Any] = []
    for entity_id in ids:
        updated = connection.execute(builder.restore_update_statement([entity_id]))
        if updated.rowcount == 1:
            restored.append(entity_id)
        else:
            logger.info(
                "Row left the pool before restore",
                entity=source.entity.key,
                entity_id=entity_id,
            )
    return restored


def restore_records(
    session: Session,
    introspector: SchemaIntrospector,
    entity: RecoveryEntityConfig,
    request: RestoreRequest,
    actor: str,
    ip_address: str | None = None,
) -> RestoreResult:
    """Bring soft-deleted rows back to live in one transaction.

    The batch is classified exactly like a preview first. Any blocked id
    rejects the whole batch; ids that are not in the pool are skipped, so
    repeating a restore is a no-op. The audit entry is written in the same
    transaction as the change.

    Raises:
        RestoreConflictError: If any requested id would violate a live invariant
        SchemaError: If the entity's table or required columns are missing
    """
    ids = list(request.ids)

    try:
        source = resolve_recovery_source(session, introspector, entity)
        preview = classify_ids(session, introspector, source, ids)

        if preview.not_recoverable:
            record_restore_rejection(entity.key, "conflict")
            raise RestoreConflictError(
                f"{len(preview.not_recoverable)} record(s) cannot be restored "
                "without conflicting with live data.",
                blocked_ids=preview.blocked_ids,
            )

        candidates = [record.id for record in preview.recoverable]
        if not candidates:
            restored_ids: list[Any] = []
        elif source.archive_backed:
            restored_ids = restore_archived_accounts(
                session, introspector, source, candidates
            )
        else:
            restored_ids = _restore_flagged(session, source, candidates)

        restored_keys = {str(entity_id) for entity_id in restored_ids}
        skipped_ids = [requested for requested in ids if requested not in restored_keys]

        AuditLogRepository(session).record(
            action=f"{RESTORE_ACTION_PREFIX}{entity.key}",
            user_id=actor,
            ip_address=ip_address,
            details={
                "table": source.table,
                "idColumn": source.id_column,
                "mode": entity.mode.value,
                "archiveBacked": source.archive_backed,
                "requestedIds": ids,
                "restoredIds": restored_ids,
                "skippedIds": skipped_ids,
                "restoredCount": len(restored_ids),
                "reason": request.reason,
                "approvalNote": request.approval_note,
                "outcome": "restored" if restored_ids else "no-op",
            },
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    record_restore(entity.key, len(restored_ids))
    log_recovery_action(
        "restore",
        entity.key,
        actor,
        restored_count=len(restored_ids),
        skipped_count=len(skipped_ids),
    )
    logger.info(
        "Restore committed",
        entity=entity.key,
        restored=len(restored_ids),
        skipped=len(skipped_ids),
    )
    return RestoreResult(
        restored_count=len(restored_ids),
        restored_ids=restored_ids,
        skipped_ids=skipped_ids,
    )
