"""Resolve where an entity's recoverable rows live in the current schema."""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Final

from sqlmodel import Session

from ..domain.entities import (
    RecoveryEntityConfig,
    RecoveryRecord,
    first_label,
    pick_label_columns,
)
from ..domain.exceptions import SchemaError
from ..domain.registry import is_archive_backed_account_entity
from ..infrastructure.database.query_builder import FlagFilter, RecoverySource
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from .archive_accounts import resolve_archive_source

logger: Final = get_logger(__name__)


def resolve_flag_source(
    introspector: SchemaIntrospector, entity: RecoveryEntityConfig
) -> RecoverySource:
    """Source for entities soft-deleted in place by a mode flag column.

    Raises:
        SchemaError: If the table is missing or lacks its id or flag column
    """
    columns = introspector.columns(entity.table)
    if columns.is_empty:
        raise SchemaError(f"Table '{entity.table}' is not accessible.")

    mode = entity.columns
    for required in (entity.id_column, mode.flag_column):
        if not columns.has(required):
            raise SchemaError(
                f"Column '{required}' is not available on '{entity.table}'."
            )

    key_columns: tuple[str, ...] = ()
    if entity.conflict_rule is not None:
        key_columns = tuple(
            name for name in entity.conflict_rule.key_columns if columns.has(name)
        )

    return RecoverySource(
        entity=entity,
        columns=columns,
        id_column=entity.id_column,
        pool_filter=FlagFilter(mode.flag_column),
        time_column=mode.time_column if columns.has(mode.time_column) else None,
        reason_column=mode.reason_column if columns.has(mode.reason_column) else None,
        label_columns=tuple(pick_label_columns(columns, entity.default_label_columns)),
        key_columns=key_columns,
    )


def resolve_recovery_source(
    session: Session, introspector: SchemaIntrospector, entity: RecoveryEntityConfig
) -> RecoverySource:
    if is_archive_backed_account_entity(entity.key):
        source = resolve_archive_source(session, introspector, entity)
    else:
        source = resolve_flag_source(introspector, entity)

    logger.debug(
        "Recovery source resolved",
        entity=entity.key,
        table=source.table,
        pool=type(source.pool_filter).__name__,
        labels=list(source.label_columns),
    )
    return source


def to_datetime(value: Any) -> datetime | None:
    """Coerce a driver value to ``datetime``.

    SQLite hands back text for columns read without a declared type.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp in recovery row", value=text)
        return None


def record_from_row(row: Mapping[str, Any], source: RecoverySource) -> RecoveryRecord:
    """Build a display record from a row of :meth:`RecoveryQueryBuilder.projection`."""
    values = {name: row.get(f"label_{name}") for name in source.label_columns}
    reason = row.get("reason_text")
    return RecoveryRecord(
        id=row["entity_id"],
        occurred_at=to_datetime(row.get("occurred_at")),
        reason=str(reason) if reason not in (None, "") else None,
        label=first_label(values, source.label_columns),
        fields=values,
    )
