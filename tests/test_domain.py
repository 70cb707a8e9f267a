"""Tests for the pure recovery rules: registry, ids, pagination, confirmation."""

import pytest

from recovery_center.domain.constants import (
    CONFIRMATION_MISMATCH,
    FIELD_INVALID_VALUE,
    FIELD_REQUIRED,
    FIELD_TOO_LONG,
    MAX_IDS_PER_REQUEST,
    MAX_NOTE_LENGTH,
    TOO_MANY_ITEMS,
)
from recovery_center.domain.entities import (
    RestoreRequest,
    clamp_pagination,
    first_label,
    normalize_role_token,
    pick_label_columns,
    sanitize_ids,
)
from recovery_center.domain.exceptions import RecoveryValidationError
from recovery_center.domain.modes import (
    RecoveryMode,
    mode_columns,
    mode_flag_column,
    mode_reason_column,
    mode_time_column,
)
from recovery_center.domain.registry import (
    RECOVERY_ENTITIES,
    archive_role_filters_for_entity,
    find_recovery_entity,
    is_archive_backed_account_entity,
)


def test_registry_keys_are_unique_and_lowercase():
    keys = [entity.key for entity in RECOVERY_ENTITIES]
    assert len(keys) == len(set(keys))
    assert all(key == key.lower() for key in keys)
    assert len(keys) == 11


def test_find_recovery_entity_ignores_case_and_whitespace():
    assert find_recovery_entity("  Student ").table == "student"
    assert find_recovery_entity("activity").table == "activities"
    assert find_recovery_entity("nope") is None
    assert find_recovery_entity("") is None
    assert find_recovery_entity(None) is None


def test_account_entities_are_archive_backed():
    for key in ("principal", "master_teacher", "teacher"):
        assert is_archive_backed_account_entity(key)
    assert not is_archive_backed_account_entity("student")
    assert archive_role_filters_for_entity("master_teacher") == [
        "master_teacher",
        "masterteacher",
    ]
    assert archive_role_filters_for_entity("student") == []


@pytest.mark.parametrize("mode", list(RecoveryMode))
def test_mode_columns_are_distinct(mode):
    columns = mode_columns(mode)
    names = [
        columns.flag_column,
        columns.time_column,
        columns.reason_column,
        columns.actor_column,
    ]
    assert len(set(names)) == 4
    assert columns.flag_column not in columns.cleared_columns()


def test_mode_column_lookups_are_distinct_across_modes():
    modes = list(RecoveryMode)
    for lookup in (mode_flag_column, mode_time_column, mode_reason_column):
        names = [lookup(mode) for mode in modes]
        assert len(set(names)) == len(modes)
    assert mode_flag_column("voided") == "is_voided"
    assert mode_time_column(RecoveryMode.ARCHIVED) == "archived_at"
    assert mode_reason_column("deleted") == "delete_reason"


def test_unknown_mode_raises():
    with pytest.raises(ValueError):
        mode_columns("purged")


@pytest.mark.parametrize(
    "raw",
    ["Master Teacher", "master-teacher", "MASTER_TEACHER", " master / teacher "],
)
def test_normalize_role_token(raw):
    assert normalize_role_token(raw) == "master_teacher"


def test_pick_label_columns_prefers_entity_defaults():
    columns = {"student_id", "lrn", "first_name", "name"}
    assert pick_label_columns(columns, ("first_name", "last_name", "lrn")) == [
        "first_name",
        "lrn",
    ]


def test_pick_label_columns_falls_back_to_allow_list():
    columns = {"assessment_id", "name", "password_hash", "email"}
    assert pick_label_columns(columns, ("title", "description")) == ["name", "email"]
    assert pick_label_columns({"id", "secret"}, ("title",)) == []


def test_first_label_skips_blank_values():
    values = {"first_name": "  ", "last_name": None, "lrn": "LRN-9"}
    assert first_label(values, ["first_name", "last_name", "lrn"]) == "LRN-9"
    assert first_label({}, ["first_name"]) is None


def test_sanitize_ids_trims_dedupes_and_keeps_case():
    assert sanitize_ids([" 12 ", 12, "PR-a", "pr-A", "", None, 3.0, True]) == [
        "12",
        "PR-a",
        "pr-A",
        "3",
    ]


@pytest.mark.parametrize(
    ("value", "code"),
    [
        (None, FIELD_REQUIRED),
        ([], FIELD_REQUIRED),
        ("12", FIELD_REQUIRED),
        (["", "  ", None], FIELD_INVALID_VALUE),
    ],
)
def test_sanitize_ids_rejects_unusable_lists(value, code):
    with pytest.raises(RecoveryValidationError) as exc_info:
        sanitize_ids(value)
    assert exc_info.value.field == "ids"
    assert exc_info.value.code == code


def test_sanitize_ids_limits_batch_size():
    assert len(sanitize_ids(list(range(MAX_IDS_PER_REQUEST)))) == MAX_IDS_PER_REQUEST
    with pytest.raises(RecoveryValidationError, match="Maximum") as exc_info:
        sanitize_ids(list(range(MAX_IDS_PER_REQUEST + 1)))
    assert exc_info.value.code == TOO_MANY_ITEMS


@pytest.mark.parametrize(
    ("page", "page_size", "expected"),
    [
        (None, None, (1, 20)),
        ("3", "50", (3, 50)),
        ("0", "-5", (1, 20)),
        ("abc", "1000", (1, 100)),
        ("2.9", "10.5", (2, 10)),
        ("nan", "inf", (1, 20)),
    ],
)
def test_clamp_pagination(page, page_size, expected):
    assert clamp_pagination(page, page_size) == expected


def test_restore_request_requires_confirmation_first():
    with pytest.raises(RecoveryValidationError) as exc_info:
        RestoreRequest.validate([], "", "", "restor")
    assert exc_info.value.field == "confirmPhrase"
    assert exc_info.value.code == CONFIRMATION_MISMATCH


def test_restore_request_accepts_confirmation_in_any_case():
    request = RestoreRequest.validate(
        ["1", "1", " 2"], "  Wrongly deleted ", "Approved by registrar", " restore "
    )
    assert request.ids == ("1", "2")
    assert request.reason == "Wrongly deleted"
    assert request.approval_note == "Approved by registrar"


@pytest.mark.parametrize(
    ("reason", "approval_note", "field", "code"),
    [
        ("", "ok", "reason", FIELD_REQUIRED),
        ("   ", "ok", "reason", FIELD_REQUIRED),
        ("ok", None, "approvalNote", FIELD_REQUIRED),
        ("x" * (MAX_NOTE_LENGTH + 1), "ok", "reason", FIELD_TOO_LONG),
    ],
)
def test_restore_request_requires_notes(reason, approval_note, field, code):
    with pytest.raises(RecoveryValidationError) as exc_info:
        RestoreRequest.validate(["1"], reason, approval_note, "RESTORE")
    assert exc_info.value.field == field
    assert exc_info.value.code == code


def test_restore_request_accepts_note_at_length_limit():
    note = "x" * MAX_NOTE_LENGTH
    assert RestoreRequest.validate(["1"], note, note, "RESTORE").reason == note
