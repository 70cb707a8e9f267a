"""Catalog of recoverable entities.

Built once at import time and never mutated, so it is safe to read from any
request concurrently.
"""

from types import MappingProxyType
from typing import Final

from .entities import ConflictRule, RecoveryEntityConfig, normalize_role_token
from .modes import RecoveryMode

_ACCOUNT_CONFLICTS: Final = ConflictRule(key_columns=("user_id", "email"))

RECOVERY_ENTITIES: Final = (
    RecoveryEntityConfig(
        key="student",
        table="student",
        id_column="student_id",
        mode=RecoveryMode.DELETED,
        default_label_columns=("first_name", "last_name", "lrn"),
        conflict_rule=ConflictRule(key_columns=("lrn",)),
    ),
    RecoveryEntityConfig(
        key="principal",
        table="principal",
        id_column="principal_id",
        mode=RecoveryMode.DELETED,
        default_label_columns=("principal_id",),
        conflict_rule=_ACCOUNT_CONFLICTS,
    ),
    RecoveryEntityConfig(
        key="master_teacher",
        table="master_teacher",
        id_column="master_teacher_id",
        mode=RecoveryMode.DELETED,
        default_label_columns=("master_teacher_id",),
        conflict_rule=_ACCOUNT_CONFLICTS,
    ),
    RecoveryEntityConfig(
        key="teacher",
        table="teacher",
        id_column="teacher_id",
        mode=RecoveryMode.DELETED,
        default_label_columns=("teacher_id",),
        conflict_rule=_ACCOUNT_CONFLICTS,
    ),
    RecoveryEntityConfig(
        key="parent",
        table="parent",
        id_column="parent_id",
        mode=RecoveryMode.DELETED,
        default_label_columns=("parent_id",),
        conflict_rule=ConflictRule(key_columns=("email",)),
    ),
    RecoveryEntityConfig(
        key="activity",
        table="activities",
        id_column="activity_id",
        mode=RecoveryMode.ARCHIVED,
        default_label_columns=("title", "subject", "type"),
    ),
    RecoveryEntityConfig(
        key="remedial_quarter",
        table="remedial_quarter",
        id_column="quarter_id",
        mode=RecoveryMode.ARCHIVED,
        default_label_columns=("quarter_name", "school_year"),
    ),
    RecoveryEntityConfig(
        key="weekly_subject_schedule",
        table="weekly_subject_schedule",
        id_column="schedule_id",
        mode=RecoveryMode.ARCHIVED,
        default_label_columns=("day_of_week",),
    ),
    RecoveryEntityConfig(
        key="assessment",
        table="assessments",
        id_column="assessment_id",
        mode=RecoveryMode.ARCHIVED,
        default_label_columns=("title", "description"),
    ),
    RecoveryEntityConfig(
        key="attendance_record",
        table="attendance_record",
        id_column="attendance_id",
        mode=RecoveryMode.VOIDED,
        default_label_columns=("student_id", "remarks"),
    ),
    RecoveryEntityConfig(
        key="performance_record",
        table="performance_records",
        id_column="record_id",
        mode=RecoveryMode.VOIDED,
        default_label_columns=("student_id", "grade"),
    ),
)

_BY_KEY: Final = MappingProxyType({entity.key: entity for entity in RECOVERY_ENTITIES})

if len(_BY_KEY) != len(RECOVERY_ENTITIES):
    raise RuntimeError("Recovery entity keys must be unique")

# Accounts whose "deleted" state is a row in the shared archive table
ARCHIVE_BACKED_ACCOUNT_ROLES: Final = MappingProxyType(
    {
        "principal": ("principal",),
        "master_teacher": ("master_teacher", "masterteacher"),
        "teacher": ("teacher",),
    }
)


def find_recovery_entity(key: str | None) -> RecoveryEntityConfig | None:
    """Look up an entity by key, ignoring case and surrounding whitespace."""
    if not key:
        return None
    return _BY_KEY.get(key.strip().lower())


def is_archive_backed_account_entity(key: str) -> bool:
    return key in ARCHIVE_BACKED_ACCOUNT_ROLES


def archive_role_filters_for_entity(key: str) -> list[str]:
    """Normalized role tokens accepted for an archive-backed entity."""
    tokens: dict[str, None] = {}
    for value in ARCHIVE_BACKED_ACCOUNT_ROLES.get(key, ()):
        token = normalize_role_token(value)
        if token:
            tokens.setdefault(token)
    return list(tokens)
