"""Runtime discovery of table columns.

The recovered tables differ between deployments, so column names are read
from the live database instead of being declared as models. Column names
returned here form the allow-list every generated statement is built from.
"""

from collections.abc import Iterable, Iterator
from typing import Final

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Inspector
from sqlalchemy.exc import NoSuchTableError
from sqlmodel import Session

from ...logging_config import get_logger

logger: Final = get_logger(__name__)


class ColumnSet:
    """The columns that exist on one table right now."""

    __slots__ = ("table", "_columns")

    def __init__(self, table: str, columns: Iterable[str] = ()):
        self.table = table
        self._columns: frozenset[str] = frozenset(columns)

    def has(self, column: str | None) -> bool:
        return column is not None and column in self._columns

    def first_present(self, *candidates: str) -> str | None:
        """Return the first candidate column that exists, or ``None``."""
        for candidate in candidates:
            if candidate in self._columns:
                return candidate
        return None

    @property
    def is_empty(self) -> bool:
        return not self._columns

    def __contains__(self, column: object) -> bool:
        return column in self._columns

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._columns))

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"ColumnSet({self.table!r}, {sorted(self._columns)!r})"


class SchemaIntrospector:
    """Reads and caches column sets for the lifetime of one instance.

    Create one per request (or per CLI command). Nothing is cached at module
    level, so a migration applied while the process runs is picked up by the
    next request.
    """

    def __init__(self, bind: Session | Connection):
        self._bind = bind
        self._inspector: Inspector | None = None
        self._cache: dict[str, ColumnSet] = {}

    def _get_inspector(self) -> Inspector:
        if self._inspector is None:
            connection = (
                self._bind.connection()
                if isinstance(self._bind, Session)
                else self._bind
            )
            self._inspector = inspect(connection)
        return self._inspector

    def columns(self, table: str) -> ColumnSet:
        """Column names of ``table``; empty when the table does not exist."""
        cached = self._cache.get(table)
        if cached is not None:
            return cached

        try:
            names = [col["name"] for col in self._get_inspector().get_columns(table)]
        except NoSuchTableError:
            logger.debug("Table not found during introspection", table=table)
            names = []

        column_set = ColumnSet(table, names)
        self._cache[table] = column_set
        return column_set

    def table_exists(self, table: str) -> bool:
        return not self.columns(table).is_empty
