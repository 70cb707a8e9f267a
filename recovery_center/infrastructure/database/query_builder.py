"""SQL construction for recovery queries.

Every identifier is taken from a :class:`ColumnSet` discovered at runtime and
every value is a bound parameter. Statements are SQLAlchemy Core expressions,
so quoting and the ``CAST(... AS CHAR)`` spelling follow the active dialect.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import (
    ColumnElement,
    Delete,
    Insert,
    Select,
    String,
    TableClause,
    Update,
    and_,
    cast,
    column,
    false,
    func,
    null,
    or_,
    select,
    table,
)
from sqlalchemy.sql.elements import ColumnClause

from ...domain.entities import RecoveryEntityConfig
from ...domain.exceptions import SchemaError
from .schema import ColumnSet


@dataclass(frozen=True)
class FlagFilter:
    """Rows whose mode flag column equals 1."""

    column: str


@dataclass(frozen=True)
class RoleFilter:
    """Archive rows whose normalized role string is one of ``tokens``."""

    column: str
    tokens: tuple[str, ...]


@dataclass(frozen=True)
class RoleIdFilter:
    """Archive rows whose role foreign key is one of ``role_ids``."""

    column: str
    role_ids: tuple[int, ...]


@dataclass(frozen=True)
class EmptyPool:
    """Nothing can be filtered safely; the pool is empty."""

    reason: str


PoolFilter = FlagFilter | RoleFilter | RoleIdFilter | EmptyPool


@dataclass(frozen=True)
class RecoverySource:
    """Where an entity's soft-deleted rows live, resolved against the schema."""

    entity: RecoveryEntityConfig
    columns: ColumnSet
    id_column: str
    pool_filter: PoolFilter
    time_column: str | None = None
    reason_column: str | None = None
    label_columns: tuple[str, ...] = ()
    key_columns: tuple[str, ...] = ()
    archive_backed: bool = False

    @property
    def table(self) -> str:
        return self.columns.table

    @property
    def is_empty(self) -> bool:
        return isinstance(self.pool_filter, EmptyPool)


def table_clause(columns: ColumnSet) -> TableClause:
    """A lightweight table whose columns are exactly the discovered ones."""
    return table(columns.table, *(column(name) for name in columns))


def require_column(clause: TableClause, columns: ColumnSet, name: str) -> ColumnClause:
    if not columns.has(name):
        raise SchemaError(f"Column '{name}' is not available on '{columns.table}'.")
    return clause.c[name]


def normalized_role_expression(role_column: ColumnClause) -> ColumnElement[Any]:
    """SQL mirror of ``normalize_role_token`` for ``-`` and space separators."""
    return func.lower(
        func.replace(func.replace(func.trim(role_column), "-", "_"), " ", "_")
    )


def normalized_key_expression(key_column: ColumnClause) -> ColumnElement[Any]:
    """Natural keys compare trimmed and case-insensitively."""
    return func.lower(func.trim(cast(key_column, String)))


def insert_row_statement(columns: ColumnSet, values: Mapping[str, Any]) -> Insert:
    """INSERT restricted to columns that exist on the target table."""
    clause = table_clause(columns)
    for name in values:
        require_column(clause, columns, name)
    return clause.insert().values(dict(values))


def key_match_statement(
    columns: ColumnSet, key_column: str, values: Sequence[str]
) -> Select[Any]:
    """Normalized values of ``key_column`` matching one of ``values``.

    ``values`` must already be normalized (trimmed, lower-case).
    """
    clause = table_clause(columns)
    key = normalized_key_expression(require_column(clause, columns, key_column))
    return (
        select(key.label("key_value"))
        .select_from(clause)
        .where(key.in_(list(values)))
        .distinct()
    )


class RecoveryQueryBuilder:
    """Builds every statement the recovery services run for one source."""

    def __init__(self, source: RecoverySource):
        self.source = source
        self._table = table_clause(source.columns)

    def col(self, name: str) -> ColumnClause:
        return require_column(self._table, self.source.columns, name)

    @property
    def id_col(self) -> ColumnClause:
        return self.col(self.source.id_column)

    def projection(self) -> list[Any]:
        source = self.source
        parts: list[Any] = [self.id_col.label("entity_id")]
        parts.append(
            self.col(source.time_column).label("occurred_at")
            if source.time_column
            else null().label("occurred_at")
        )
        parts.append(
            self.col(source.reason_column).label("reason_text")
            if source.reason_column
            else null().label("reason_text")
        )
        parts.extend(
            self.col(name).label(f"label_{name}") for name in source.label_columns
        )
        parts.extend(self.col(name).label(f"key_{name}") for name in source.key_columns)
        return parts

    def pool_predicate(self) -> ColumnElement[bool]:
        pool = self.source.pool_filter
        if isinstance(pool, FlagFilter):
            return self.col(pool.column) == 1
        if isinstance(pool, RoleFilter):
            return normalized_role_expression(self.col(pool.column)).in_(pool.tokens)
        if isinstance(pool, RoleIdFilter):
            return self.col(pool.column).in_(pool.role_ids)
        return false()

    def live_predicate(self) -> ColumnElement[bool]:
        """Rows outside the pool. Only meaningful for flag-based sources."""
        pool = self.source.pool_filter
        if not isinstance(pool, FlagFilter):
            raise SchemaError(
                f"Live rows of '{self.source.table}' are not defined by a flag column."
            )
        flag = self.col(pool.column)
        return or_(flag.is_(None), flag != 1)

    def live_key_statement(self, key_column: str, values: Sequence[str]) -> Select[Any]:
        """Live rows of this table sharing a normalized natural key with ``values``."""
        key = normalized_key_expression(self.col(key_column))
        return (
            select(key.label("key_value"), self.id_col.label("entity_id"))
            .select_from(self._table)
            .where(self.live_predicate(), key.in_(list(values)))
        )

    def search_predicate(self, query: str | None) -> ColumnElement[bool] | None:
        term = (query or "").strip()
        if not term:
            return None
        searchable = dict.fromkeys((self.source.id_column, *self.source.label_columns))
        pattern = f"%{term}%"
        return or_(*(cast(self.col(name), String).like(pattern) for name in searchable))

    def where(self, query: str | None = None) -> ColumnElement[bool]:
        """Filter shared by the count and the page statement."""
        clauses = [self.pool_predicate()]
        search = self.search_predicate(query)
        if search is not None:
            clauses.append(search)
        return and_(*clauses)

    def order_by(self) -> list[Any]:
        if self.source.time_column:
            time = self.col(self.source.time_column)
            # Undated rows sort last on every dialect
            return [time.is_(None), time.desc(), self.id_col.desc()]
        return [self.id_col.desc()]

    def count_statement(self, query: str | None = None) -> Select[Any]:
        return select(func.count()).select_from(self._table).where(self.where(query))

    def page_statement(
        self, query: str | None = None, limit: int = 20, offset: int = 0
    ) -> Select[Any]:
        return (
            select(*self.projection())
            .select_from(self._table)
            .where(self.where(query))
            .order_by(*self.order_by())
            .limit(limit)
            .offset(offset)
        )

    def lookup_statement(self, ids: Iterable[str]) -> Select[Any]:
        """Pool rows whose id, compared as text, is one of ``ids``."""
        return (
            select(*self.projection())
            .select_from(self._table)
            .where(self.pool_predicate(), cast(self.id_col, String).in_(list(ids)))
        )

    def full_row_statement(self, entity_id: Any) -> Select[Any]:
        return (
            select(*self._table.c)
            .where(self.pool_predicate(), self.id_col == entity_id)
            .with_for_update()
        )

    def restore_update_statement(self, ids: Sequence[Any]) -> Update:
        """Bring flagged rows back to live.

        Guarded by ``flag = 1`` so a row restored concurrently is matched zero
        times instead of being rewritten.
        """
        pool = self.source.pool_filter
        if not isinstance(pool, FlagFilter):
            raise SchemaError(f"'{self.source.entity.key}' is not restored by flag.")

        columns = self.source.columns
        values: dict[str, Any] = {pool.column: 0}
        for name in self.source.entity.columns.cleared_columns():
            if columns.has(name):
                values[name] = None
        if columns.has("updated_at"):
            values["updated_at"] = func.current_timestamp()

        return (
            self._table.update()
            .where(self.id_col.in_(list(ids)), self.col(pool.column) == 1)
            .values(values)
        )

    def delete_statement(self, entity_id: Any) -> Delete:
        return self._table.delete().where(
            self.pool_predicate(), self.id_col == entity_id
        )
