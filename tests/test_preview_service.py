"""Tests for classifying ids before a restore."""

import pytest
from sqlmodel import Session

from recovery_center.application.preview_service import preview_recovery
from recovery_center.domain.exceptions import RecoveryValidationError, SchemaError
from recovery_center.domain.registry import find_recovery_entity
from recovery_center.infrastructure.database.schema import SchemaIntrospector

from conftest import ARCHIVE_WITH_ROLE_ID_DDL, execute_ddl, insert_rows


def _preview(session: Session, key: str, ids):
    return preview_recovery(
        session, SchemaIntrospector(session), find_recovery_entity(key), ids
    )


def test_partitions_cover_request_and_are_disjoint(seeded: Session):
    requested, result = _preview(
        seeded, "student", ["1", "6", "4", "2", "3", "999", " 2 "]
    )

    assert requested == ["1", "6", "4", "2", "3", "999"]
    assert result.recoverable_ids == ["1", "2"]
    assert result.blocked_ids == ["6", "4"]
    assert result.not_found == ["3", "999"]

    partitions = result.recoverable_ids + result.blocked_ids + result.not_found
    assert sorted(partitions) == sorted(requested)
    assert len(set(partitions)) == len(partitions)


def test_live_conflict_names_table_and_value(seeded: Session):
    _, result = _preview(seeded, "student", ["4"])

    [blocked] = result.not_recoverable
    assert blocked.record.label == "Dan"
    assert blocked.conflict == "A live record in 'student' already uses lrn 'LRN-003'."


def test_batch_duplicate_blocks_later_rows(seeded: Session):
    _, result = _preview(seeded, "student", ["6", "1"])

    assert result.recoverable_ids == ["6"]
    assert result.blocked_ids == ["1"]
    assert "same lrn" in result.not_recoverable[0].conflict


def test_key_comparison_ignores_case_and_whitespace(seeded: Session):
    _, result = _preview(seeded, "parent", ["12", "10"])

    assert result.recoverable_ids == ["10"]
    assert result.blocked_ids == ["12"]
    assert "'parent'" in result.not_recoverable[0].conflict


def test_entities_without_conflict_rule_are_recoverable(seeded: Session):
    _, result = _preview(seeded, "activity", [22, 20, 21])
    assert result.recoverable_ids == ["22", "20", "21"]


def test_text_ids_keep_their_case(seeded: Session):
    _, result = _preview(seeded, "performance_record", ["PR-Alpha", "pr-alpha"])

    assert result.recoverable_ids == ["PR-Alpha"]
    assert result.not_found == ["pr-alpha"]


def test_archived_account_conflicts_with_live_user(seeded: Session):
    _, result = _preview(seeded, "teacher", ["100", "102", "103"])

    assert result.recoverable_ids == ["100"]
    assert result.blocked_ids == ["102"]
    assert result.not_recoverable[0].conflict == (
        "A live record in 'users' already uses email 'taken@example.com'."
    )
    # A principal is outside the teacher pool
    assert result.not_found == ["103"]


def test_archived_accounts_without_users_table_skip_conflicts(bare_session: Session):
    execute_ddl(bare_session, *ARCHIVE_WITH_ROLE_ID_DDL)
    insert_rows(bare_session, "role", [{"role_id": 3, "role_name": "teacher"}])
    insert_rows(
        bare_session,
        "archived_users",
        [
            {"archive_id": 1, "role_id": 3, "email": "a@example.com"},
            {"archive_id": 2, "role_id": 3, "email": "A@example.com "},
        ],
    )
    bare_session.commit()

    _, result = _preview(bare_session, "teacher", ["1", "2"])

    assert result.recoverable_ids == ["1"]
    assert result.blocked_ids == ["2"]


def test_empty_pool_reports_everything_not_found(bare_session: Session):
    execute_ddl(bare_session, ARCHIVE_WITH_ROLE_ID_DDL[0])
    insert_rows(bare_session, "archived_users", [{"archive_id": 1, "role_id": 3}])
    bare_session.commit()

    _, result = _preview(bare_session, "teacher", ["1"])
    assert result.not_found == ["1"]
    assert result.recoverable == []


def test_preview_writes_nothing(seeded: Session):
    _preview(seeded, "student", ["1", "2"])
    _, result = _preview(seeded, "student", ["1", "2"])
    assert result.recoverable_ids == ["1", "2"]


@pytest.mark.parametrize("ids", [[], None, ["  "]])
def test_invalid_ids_are_rejected(seeded: Session, ids):
    with pytest.raises(RecoveryValidationError):
        _preview(seeded, "student", ids)


def test_schema_error_propagates(seeded: Session):
    with pytest.raises(SchemaError):
        _preview(seeded, "remedial_quarter", ["1"])
