"""Pure domain entities without infrastructure dependencies."""

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .constants import (
    CONFIRMATION_MISMATCH,
    CONFIRMATION_PHRASE,
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    FALLBACK_LABEL_COLUMNS,
    FIELD_INVALID_VALUE,
    FIELD_REQUIRED,
    FIELD_TOO_LONG,
    MAX_IDS_PER_REQUEST,
    MAX_NOTE_LENGTH,
    MAX_PAGE,
    MAX_PAGE_SIZE,
    TOO_MANY_ITEMS,
)
from .exceptions import RecoveryValidationError
from .modes import ModeColumns, RecoveryMode, mode_columns

_ROLE_SEPARATORS = re.compile(r"[\s/-]+")


def normalize_role_token(value: str) -> str:
    """Lower-case a role name and collapse separators to underscores.

    ``"Master Teacher"``, ``"master-teacher"`` and ``"MASTER_TEACHER"`` all
    become ``"master_teacher"``.
    """
    return _ROLE_SEPARATORS.sub("_", value.strip().lower())


def pick_label_columns(columns: Iterable[str], defaults: Sequence[str]) -> list[str]:
    """Choose display columns for a table from an allow-list.

    Returns the entity defaults present in ``columns`` (in the given order). If
    none exist, falls back to the generic label columns that are present.
    Never returns a column outside those two lists.
    """
    available = set(columns)
    picked = [col for col in defaults if col in available]
    if picked:
        return picked
    return [col for col in FALLBACK_LABEL_COLUMNS if col in available]


@dataclass(frozen=True)
class ConflictRule:
    """Natural-key columns a restored row must not share with a live row.

    Flag-based entities compare against the live rows of their own table;
    archive-backed accounts compare against the live users table.
    """

    key_columns: tuple[str, ...]


@dataclass(frozen=True)
class RecoveryEntityConfig:
    """Static description of one recoverable record type."""

    key: str
    table: str
    id_column: str
    mode: RecoveryMode
    default_label_columns: tuple[str, ...]
    conflict_rule: ConflictRule | None = None

    @property
    def columns(self) -> ModeColumns:
        return mode_columns(self.mode)


@dataclass
class RecoveryRecord:
    """A soft-deleted row as shown to an operator."""

    id: str | int
    occurred_at: datetime | None = None
    reason: str | None = None
    label: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class BlockedRecord:
    """A pool row that exists but cannot be restored safely."""

    record: RecoveryRecord
    conflict: str


@dataclass
class PreviewResult:
    recoverable: list[RecoveryRecord] = field(default_factory=list)
    not_recoverable: list[BlockedRecord] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)

    @property
    def recoverable_ids(self) -> list[str]:
        return [str(record.id) for record in self.recoverable]

    @property
    def blocked_ids(self) -> list[str]:
        return [str(blocked.record.id) for blocked in self.not_recoverable]


@dataclass
class RecoveryPage:
    page: int
    page_size: int
    total: int
    records: list[RecoveryRecord]

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))


@dataclass
class RestoreResult:
    restored_count: int
    restored_ids: list[str | int]
    skipped_ids: list[str]


def parse_positive_int(value: Any, fallback: int, maximum: int) -> int:
    """Parse a client-supplied page number or size.

    Anything that is not a positive number becomes ``fallback``; values above
    ``maximum`` are clamped.
    """
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed) or parsed < 1:
        return fallback
    return min(maximum, math.floor(parsed))


def clamp_pagination(page: Any, page_size: Any) -> tuple[int, int]:
    return (
        parse_positive_int(page, DEFAULT_PAGE, MAX_PAGE),
        parse_positive_int(page_size, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE),
    )


def sanitize_ids(values: Any) -> list[str]:
    """Normalize a requested id list.

    Ids are kept as strings with their case preserved, surrounding whitespace
    is removed, blanks are dropped and duplicates collapse onto their first
    occurrence.

    Raises:
        RecoveryValidationError: If the list is missing, empty after cleaning,
            or longer than the per-request limit
    """
    if not isinstance(values, list | tuple) or len(values) == 0:
        raise RecoveryValidationError(
            "A non-empty 'ids' array is required.", "ids", FIELD_REQUIRED
        )

    ids: dict[str, None] = {}
    for raw in values:
        if raw is None or isinstance(raw, bool):
            continue
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        text = str(raw).strip()
        if text:
            ids.setdefault(text)

    if not ids:
        raise RecoveryValidationError(
            "No valid IDs were provided.", "ids", FIELD_INVALID_VALUE
        )
    if len(ids) > MAX_IDS_PER_REQUEST:
        raise RecoveryValidationError(
            f"Maximum {MAX_IDS_PER_REQUEST} IDs per recovery request.",
            "ids",
            TOO_MANY_ITEMS,
        )
    return list(ids)


def validate_note(value: Any, field_name: str) -> str:
    """Require a non-blank free-text note of bounded length."""
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise RecoveryValidationError(
            f"{field_name} is required.", field_name, FIELD_REQUIRED
        )
    if len(text) > MAX_NOTE_LENGTH:
        raise RecoveryValidationError(
            f"{field_name} must be {MAX_NOTE_LENGTH} characters or fewer.",
            field_name,
            FIELD_TOO_LONG,
        )
    return text


def is_confirmation_phrase(value: Any) -> bool:
    return isinstance(value, str) and value.strip().upper() == CONFIRMATION_PHRASE


@dataclass(frozen=True)
class RestoreRequest:
    """A vetted restore instruction. Construct it through :meth:`validate`."""

    ids: tuple[str, ...]
    reason: str
    approval_note: str

    @classmethod
    def validate(
        cls,
        ids: Any,
        reason: Any,
        approval_note: Any,
        confirm_phrase: Any,
    ) -> "RestoreRequest":
        """Apply the dual-confirmation rules.

        Raises:
            RecoveryValidationError: On the first rule that fails
        """
        if not is_confirmation_phrase(confirm_phrase):
            raise RecoveryValidationError(
                f"Type {CONFIRMATION_PHRASE} to confirm the restore.",
                "confirmPhrase",
                CONFIRMATION_MISMATCH,
            )
        return cls(
            ids=tuple(sanitize_ids(ids)),
            reason=validate_note(reason, "reason"),
            approval_note=validate_note(approval_note, "approvalNote"),
        )


def first_label(values: Mapping[str, Any], label_columns: Sequence[str]) -> str | None:
    """Return the first non-empty value walking ``label_columns`` in order."""
    for col in label_columns:
        value = values.get(col)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None
