"""Entity-specific checks that keep a restore from duplicating live data.

A student conflicts with a live student sharing its LRN, a parent with a
live parent sharing its email, and an archived account with a live user
sharing its user id or email. Rows within one batch that share a natural
key conflict with each other: the first one wins.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final

from sqlmodel import Session

from ..config import settings
from ..infrastructure.database.query_builder import (
    RecoveryQueryBuilder,
    RecoverySource,
    key_match_statement,
)
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from .archive_accounts import ACCOUNT_KEY_COLUMNS

logger: Final = get_logger(__name__)


def _normalize_key(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _live_key_values(
    session: Session,
    introspector: SchemaIntrospector,
    source: RecoverySource,
    key_column: str,
    values: Sequence[Any],
) -> tuple[str, set[str]]:
    """Return the live table name and the normalized live values of a key."""
    connection = session.connection()

    if source.archive_backed:
        live_table = settings.live_users_table
        users_columns = introspector.columns(live_table)
        live_column = ACCOUNT_KEY_COLUMNS.get(key_column, key_column)
        if not users_columns.has(live_column):
            logger.debug(
                "Live users table cannot be checked",
                table=live_table,
                column=live_column,
            )
            return live_table, set()
        statement = key_match_statement(users_columns, live_column, values)
    else:
        live_table = source.table
        statement = RecoveryQueryBuilder(source).live_key_statement(key_column, values)

    found = {
        normalized
        for row in connection.execute(statement).mappings()
        if (normalized := _normalize_key(row["key_value"])) is not None
    }
    return live_table, found


def find_conflicts(
    session: Session,
    introspector: SchemaIntrospector,
    source: RecoverySource,
    rows: Sequence[Mapping[str, Any]],
) -> dict[str, str]:
    """Map the id of every conflicting pool row to a human-readable reason.

    ``rows`` are projected pool rows in request order.
    """
    if not source.key_columns or not rows:
        return {}

    conflicts: dict[str, str] = {}

    for key_column in source.key_columns:
        candidates = sorted(
            {
                normalized
                for row in rows
                if (normalized := _normalize_key(row[f"key_{key_column}"])) is not None
            }
        )
        if not candidates:
            continue

        live_table, live_values = _live_key_values(
            session, introspector, source, key_column, candidates
        )

        claimed: set[str] = set()
        for row in rows:
            entity_id = str(row["entity_id"])
            normalized = _normalize_key(row[f"key_{key_column}"])
            if normalized is None or entity_id in conflicts:
                continue
            if normalized in live_values:
                conflicts[entity_id] = (
                    f"A live record in '{live_table}' already uses "
                    f"{key_column} '{row[f'key_{key_column}']}'."
                )
            elif normalized in claimed:
                conflicts[entity_id] = (
                    f"Another record in this batch has the same {key_column}."
                )
            else:
                claimed.add(normalized)

    if conflicts:
        logger.info(
            "Restore conflicts detected",
            entity=source.entity.key,
            blocked=len(conflicts),
        )
    return conflicts
