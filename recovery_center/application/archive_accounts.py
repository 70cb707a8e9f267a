"""Principal, master teacher and teacher accounts archived into one table.

Archiving an account moves its row from the live users table into the
shared archive table, tagged with a role. Restoring reverses the move.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final

from sqlalchemy import func, select
from sqlmodel import Session

from ..config import settings
from ..domain.constants import (
    ARCHIVE_ID_COLUMNS,
    ARCHIVE_LABEL_COLUMNS,
    ARCHIVE_REASON_COLUMN,
    ARCHIVE_TIME_COLUMNS,
)
from ..domain.entities import (
    RecoveryEntityConfig,
    normalize_role_token,
    pick_label_columns,
)
from ..domain.exceptions import SchemaError
from ..domain.registry import archive_role_filters_for_entity
from ..infrastructure.database.query_builder import (
    EmptyPool,
    PoolFilter,
    RecoveryQueryBuilder,
    RecoverySource,
    RoleFilter,
    RoleIdFilter,
    insert_row_statement,
    table_clause,
)
from ..infrastructure.database.schema import ColumnSet, SchemaIntrospector
from ..logging_config import get_logger

logger: Final = get_logger(__name__)

# Archive column -> live users column compared for duplicate accounts
ACCOUNT_KEY_COLUMNS: Final = {
    "user_id": "user_id",
    "email": "email",
    "user_email": "email",
}

# Copied verbatim from the archive row when both tables have them
COPIED_ACCOUNT_COLUMNS: Final = (
    "user_id",
    "user_code",
    "first_name",
    "middle_name",
    "last_name",
    "suffix",
    "email",
    "contact_number",
    "phone_number",
    "role_id",
)

RESTORED_STATUS: Final = "Active"
RESTORED_EMAIL_DOMAIN: Final = "restored.local"


def role_names_by_id(
    session: Session, introspector: SchemaIntrospector
) -> dict[int, str]:
    """Normalized role names keyed by role id.

    A missing or incomplete role lookup table yields an empty mapping.
    """
    role_columns = introspector.columns(settings.role_table)
    if not (role_columns.has("role_id") and role_columns.has("role_name")):
        logger.warning("Role lookup table unavailable", table=settings.role_table)
        return {}

    roles = table_clause(role_columns)
    statement = select(roles.c.role_id, roles.c.role_name).where(
        roles.c.role_id.is_not(None), roles.c.role_name.is_not(None)
    )

    names: dict[int, str] = {}
    for role_id, role_name in session.connection().execute(statement):
        try:
            numeric_id = int(role_id)
        except (TypeError, ValueError):
            continue
        names.setdefault(numeric_id, normalize_role_token(str(role_name)))
    return names


def accepted_role_ids(
    session: Session, introspector: SchemaIntrospector, tokens: Sequence[str]
) -> tuple[int, ...]:
    """Role ids whose normalized name is one of ``tokens``."""
    names = role_names_by_id(session, introspector)
    return tuple(role_id for role_id, name in names.items() if name in tokens)


def _archive_pool_filter(
    session: Session,
    introspector: SchemaIntrospector,
    entity: RecoveryEntityConfig,
    columns: ColumnSet,
) -> PoolFilter:
    tokens = archive_role_filters_for_entity(entity.key)
    if not tokens:
        return EmptyPool(f"No archive roles are mapped to '{entity.key}'.")

    if columns.has("role"):
        return RoleFilter("role", tuple(tokens))

    if columns.has("role_id"):
        role_ids = accepted_role_ids(session, introspector, tokens)
        if not role_ids:
            return EmptyPool(f"No role ids match '{entity.key}'.")
        return RoleIdFilter("role_id", role_ids)

    return EmptyPool(f"Table '{columns.table}' has no role column.")


def resolve_archive_source(
    session: Session, introspector: SchemaIntrospector, entity: RecoveryEntityConfig
) -> RecoverySource:
    """Source for an account entity backed by the shared archive table.

    Raises:
        SchemaError: If the archive table is missing or has no id column
    """
    archive_table = settings.archive_users_table
    columns = introspector.columns(archive_table)
    if columns.is_empty:
        raise SchemaError(f"Table '{archive_table}' is not accessible.")

    id_column = columns.first_present(*ARCHIVE_ID_COLUMNS)
    if id_column is None:
        raise SchemaError(
            f"Table '{archive_table}' is missing archive identifier column."
        )

    pool_filter = _archive_pool_filter(session, introspector, entity, columns)
    if isinstance(pool_filter, EmptyPool):
        logger.info(
            "Archive pool is empty", entity=entity.key, reason=pool_filter.reason
        )

    return RecoverySource(
        entity=entity,
        columns=columns,
        id_column=id_column,
        pool_filter=pool_filter,
        time_column=columns.first_present(*ARCHIVE_TIME_COLUMNS),
        reason_column=columns.first_present(ARCHIVE_REASON_COLUMN),
        label_columns=tuple(pick_label_columns(columns, ARCHIVE_LABEL_COLUMNS)),
        key_columns=tuple(name for name in ACCOUNT_KEY_COLUMNS if columns.has(name)),
        archive_backed=True,
    )


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _role_name(
    archived: Mapping[str, Any], role_names: Mapping[int, str]
) -> str | None:
    role = _text(archived.get("role"))
    if role:
        return normalize_role_token(role)
    try:
        return role_names.get(int(archived["role_id"]))
    except (KeyError, TypeError, ValueError):
        return None


def build_live_user_values(
    archived: Mapping[str, Any],
    archive_id: Any,
    users_columns: ColumnSet,
    role_names: Mapping[int, str] | None = None,
) -> dict[str, Any]:
    """Values for re-inserting an archived account into the live users table.

    Only columns present on the live table are returned. Credentials are not
    part of the archive and are never written here. The role is written in
    its normalized form, resolved through ``role_names`` when the archive
    only carries a role id.
    """
    values: dict[str, Any] = {}
    for name in COPIED_ACCOUNT_COLUMNS:
        if name in archived and archived[name] is not None:
            values[name] = archived[name]

    full_name = _text(archived.get("name"))
    if full_name and not (values.get("first_name") or values.get("last_name")):
        first, _, last = full_name.partition(" ")
        values["first_name"] = first
        values["last_name"] = last.strip() or None

    if full_name is None:
        parts = [_text(values.get("first_name")), _text(values.get("last_name"))]
        full_name = " ".join(part for part in parts if part) or None
    if full_name:
        values["name"] = full_name

    email = _text(archived.get("email")) or _text(archived.get("user_email"))
    values["email"] = email or f"restored_user_{archive_id}@{RESTORED_EMAIL_DOMAIN}"
    values["username"] = _text(archived.get("username")) or values["email"]

    role = _role_name(archived, role_names or {})
    if role:
        values["role"] = role

    values["status"] = RESTORED_STATUS
    values["created_at"] = func.current_timestamp()
    values["updated_at"] = func.current_timestamp()

    return {name: value for name, value in values.items() if users_columns.has(name)}


def restore_archived_accounts(
    session: Session,
    introspector: SchemaIntrospector,
    source: RecoverySource,
    archive_ids: Sequence[Any],
) -> list[Any]:
    """Move archive rows back into the live users table.

    Runs inside the caller's transaction. Returns the archive ids that were
    actually moved; rows that disappeared since the preview are skipped.

    Raises:
        SchemaError: If the live users table is not accessible
    """
    users_columns = introspector.columns(settings.live_users_table)
    if users_columns.is_empty:
        raise SchemaError(f"Table '{settings.live_users_table}' is not accessible.")

    role_names: dict[int, str] = {}
    if (
        users_columns.has("role")
        and not source.columns.has("role")
        and source.columns.has("role_id")
    ):
        role_names = role_names_by_id(session, introspector)

    connection = session.connection()
    builder = RecoveryQueryBuilder(source)
    restored: list[Any] = []

    for archive_id in archive_ids:
        statement = builder.full_row_statement(archive_id)
        archived = connection.execute(statement).mappings().first()
        if archived is None:
            logger.info(
                "Archived account vanished before restore",
                entity=source.entity.key,
                archive_id=archive_id,
            )
            continue

        values = build_live_user_values(archived, archive_id, users_columns, role_names)
        connection.execute(insert_row_statement(users_columns, values))
        deleted = connection.execute(builder.delete_statement(archive_id))
        if deleted.rowcount == 1:
            restored.append(archive_id)

    return restored
