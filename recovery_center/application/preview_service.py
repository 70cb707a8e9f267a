from collections.abc import Sequence
from typing import Any, Final

from sqlmodel import Session

from ..domain.entities import (
    BlockedRecord,
    PreviewResult,
    RecoveryEntityConfig,
    sanitize_ids,
)
from ..infrastructure.database.query_builder import RecoveryQueryBuilder, RecoverySource
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from ..metrics import record_preview
from .conflicts import find_conflicts
from .sources import record_from_row, resolve_recovery_source

logger: Final = get_logger(__name__)


def classify_ids(
    session: Session,
    introspector: SchemaIntrospector,
    source: RecoverySource,
    ids: Sequence[str],
) -> PreviewResult:
    """Partition already-sanitized ids into recoverable, blocked and missing.

    Every id lands in exactly one partition, in request order.
    """
    result = PreviewResult()
    if source.is_empty:
        result.not_found.extend(ids)
        return result

    builder = RecoveryQueryBuilder(source)
    rows = session.connection().execute(builder.lookup_statement(ids)).mappings().all()
    by_id = {str(row["entity_id"]): row for row in rows}

    found = [by_id[requested] for requested in ids if requested in by_id]
    conflicts = find_conflicts(session, introspector, source, found)

    for requested in ids:
        row = by_id.get(requested)
        if row is None:
            result.not_found.append(requested)
            continue
        record = record_from_row(row, source)
        conflict = conflicts.get(requested)
        if conflict is None:
            result.recoverable.append(record)
        else:
            result.not_recoverable.append(
                BlockedRecord(record=record, conflict=conflict)
            )

    return result


def preview_recovery(
    session: Session,
    introspector: SchemaIntrospector,
    entity: RecoveryEntityConfig,
    ids: Any,
) -> tuple[list[str], PreviewResult]:
    """Dry-run a restore. Nothing is written.

    Returns the sanitized ids together with their classification.

    Raises:
        RecoveryValidationError: If ``ids`` is not a usable id list
        SchemaError: If the entity's table or required columns are missing
    """
    requested = sanitize_ids(ids)
    source = resolve_recovery_source(session, introspector, entity)
    result = classify_ids(session, introspector, source, requested)

    record_preview(entity.key, len(result.not_recoverable), len(result.not_found))
    logger.info(
        "Recovery preview",
        entity=entity.key,
        requested=len(requested),
        recoverable=len(result.recoverable),
        not_recoverable=len(result.not_recoverable),
        not_found=len(result.not_found),
    )
    return requested, result
