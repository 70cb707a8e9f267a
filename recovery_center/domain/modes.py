"""Soft-deletion conventions and the columns that govern each of them."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Final


class RecoveryMode(StrEnum):
    DELETED = "deleted"
    ARCHIVED = "archived"
    VOIDED = "voided"


@dataclass(frozen=True)
class ModeColumns:
    """The columns one soft-deletion convention uses on a live table."""

    mode: RecoveryMode
    flag_column: str
    time_column: str
    reason_column: str
    actor_column: str

    def cleared_columns(self) -> tuple[str, ...]:
        """Columns reset to NULL when a row is brought back."""
        return (self.time_column, self.reason_column, self.actor_column)


DeletedMode: Final = ModeColumns(
    mode=RecoveryMode.DELETED,
    flag_column="is_deleted",
    time_column="deleted_at",
    reason_column="delete_reason",
    actor_column="deleted_by",
)

ArchivedMode: Final = ModeColumns(
    mode=RecoveryMode.ARCHIVED,
    flag_column="is_archived",
    time_column="archived_at",
    reason_column="reason",
    actor_column="archived_by",
)

VoidedMode: Final = ModeColumns(
    mode=RecoveryMode.VOIDED,
    flag_column="is_voided",
    time_column="voided_at",
    reason_column="void_reason",
    actor_column="voided_by",
)

_MODE_COLUMNS: Final[dict[RecoveryMode, ModeColumns]] = {
    RecoveryMode.DELETED: DeletedMode,
    RecoveryMode.ARCHIVED: ArchivedMode,
    RecoveryMode.VOIDED: VoidedMode,
}


def mode_columns(mode: RecoveryMode | str) -> ModeColumns:
    """Look up the column convention for a mode.

    Raises:
        ValueError: If ``mode`` is not one of the three recovery modes
    """
    return _MODE_COLUMNS[RecoveryMode(mode)]


def mode_flag_column(mode: RecoveryMode | str) -> str:
    return mode_columns(mode).flag_column


def mode_time_column(mode: RecoveryMode | str) -> str:
    return mode_columns(mode).time_column


def mode_reason_column(mode: RecoveryMode | str) -> str:
    return mode_columns(mode).reason_column
