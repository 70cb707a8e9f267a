"""Tests for listing soft-deleted rows against partially migrated schemas."""

from datetime import datetime

import pytest
from sqlmodel import Session

from recovery_center.application.list_service import list_recoverable
from recovery_center.domain.exceptions import SchemaError
from recovery_center.domain.registry import find_recovery_entity
from recovery_center.infrastructure.database.schema import SchemaIntrospector

from conftest import ARCHIVE_WITH_ROLE_ID_DDL, execute_ddl, insert_rows


def _list(session: Session, key: str, **kwargs):
    return list_recoverable(
        session, SchemaIntrospector(session), find_recovery_entity(key), **kwargs
    )


def test_students_newest_first_with_undated_last(seeded: Session):
    page = _list(seeded, "student")

    assert page.total == 5
    assert [record.id for record in page.records] == [6, 2, 4, 1, 5]
    assert page.records[0].occurred_at == datetime(2024, 3, 4, 8, 0)
    assert page.records[-1].occurred_at is None


def test_live_rows_are_not_listed(seeded: Session):
    page = _list(seeded, "student")
    assert 3 not in [record.id for record in page.records]


def test_label_is_first_non_empty_label_column(seeded: Session):
    records = {record.id: record for record in _list(seeded, "student").records}

    assert records[1].label == "Ana"
    assert records[1].fields == {
        "first_name": "Ana",
        "last_name": "Reyes",
        "lrn": "LRN-001",
    }
    assert records[5].label == "LRN-005"
    assert records[1].reason == "Duplicate enrolment"
    assert records[2].reason is None


def test_search_matches_labels_and_id(seeded: Session):
    assert [r.id for r in _list(seeded, "student", query="ana").records] == [1]
    assert [r.id for r in _list(seeded, "student", query=" 5 ").records] == [5]
    assert _list(seeded, "student", query="LRN-00").total == 5
    assert _list(seeded, "student", query="zzz").total == 0


def test_search_total_matches_filter(seeded: Session):
    page = _list(seeded, "student", query="LRN-001", page_size=1)
    assert page.total == 2
    assert page.total_pages == 2
    assert len(page.records) == 1


def test_pagination(seeded: Session):
    page = _list(seeded, "student", page="2", page_size="2")

    assert (page.page, page.page_size, page.total_pages) == (2, 2, 3)
    assert [record.id for record in page.records] == [4, 1]


def test_invalid_pagination_falls_back(seeded: Session):
    page = _list(seeded, "student", page="-3", page_size="500")
    assert (page.page, page.page_size) == (1, 100)


def test_page_past_the_end_is_empty(seeded: Session):
    page = _list(seeded, "student", page=9)
    assert page.records == []
    assert page.total == 5


def test_table_without_optional_columns(seeded: Session):
    page = _list(seeded, "parent")

    assert [record.id for record in page.records] == [12, 10]
    assert all(record.reason is None for record in page.records)
    assert page.records[1].label == "10"


def test_table_without_time_column_orders_by_id(seeded: Session):
    page = _list(seeded, "assessment")

    assert [record.id for record in page.records] == [31, 30]
    assert page.records[0].occurred_at is None
    # Falls back to the generic label columns
    assert page.records[0].label == "Pop Quiz"


def test_archived_activities(seeded: Session):
    page = _list(seeded, "activity")

    assert [record.label for record in page.records] == [
        "Spelling Bee",
        "Math Quiz",
        "Reading Drill",
    ]
    assert page.records[0].reason == "End of term"


def test_voided_rows_with_text_ids(seeded: Session):
    page = _list(seeded, "performance_record")
    assert [record.id for record in page.records] == ["PR-Alpha"]


def test_missing_flag_column_is_schema_error(seeded: Session):
    with pytest.raises(SchemaError, match="is_archived"):
        _list(seeded, "remedial_quarter")


def test_missing_table_is_schema_error(seeded: Session):
    introspector = SchemaIntrospector(seeded)
    assert introspector.table_exists("student")
    assert not introspector.table_exists("weekly_subject_schedule")

    with pytest.raises(SchemaError, match="weekly_subject_schedule"):
        _list(seeded, "weekly_subject_schedule")


def test_archived_accounts_filtered_by_role(seeded: Session):
    teachers = _list(seeded, "teacher")
    assert [record.id for record in teachers.records] == [102, 100]
    assert teachers.records[1].label == "Tess"
    assert teachers.records[1].reason == "Resigned"

    masters = _list(seeded, "master_teacher")
    assert [record.label for record in masters.records] == ["Mario Dela Cruz"]

    assert [record.id for record in _list(seeded, "principal").records] == [103]


def test_archived_accounts_filtered_by_role_id(bare_session: Session):
    execute_ddl(bare_session, *ARCHIVE_WITH_ROLE_ID_DDL)
    insert_rows(
        bare_session,
        "role",
        [
            {"role_id": 1, "role_name": "Principal"},
            {"role_id": 2, "role_name": "Master-Teacher"},
            {"role_id": 3, "role_name": "Teacher"},
        ],
    )
    insert_rows(
        bare_session,
        "archived_users",
        [
            {"archive_id": 7, "role_id": 3, "name": "Old", "timestamp": "2024-01-01"},
            {"archive_id": 8, "role_id": 2, "name": "Mae", "timestamp": "2024-01-02"},
            {"archive_id": 9, "role_id": 3, "name": "New", "timestamp": "2024-01-03"},
        ],
    )
    bare_session.commit()

    teachers = _list(bare_session, "teacher")
    assert [record.id for record in teachers.records] == [9, 7]
    assert teachers.records[0].occurred_at == datetime(2024, 1, 3)

    assert [record.id for record in _list(bare_session, "master_teacher").records] == [
        8
    ]


def test_role_id_archive_without_role_table_is_empty(bare_session: Session):
    execute_ddl(bare_session, ARCHIVE_WITH_ROLE_ID_DDL[0])
    insert_rows(bare_session, "archived_users", [{"archive_id": 1, "role_id": 3}])
    bare_session.commit()

    page = _list(bare_session, "teacher")
    assert page.total == 0
    assert page.records == []


def test_missing_archive_table_is_schema_error(bare_session: Session):
    with pytest.raises(SchemaError, match="archived_users"):
        _list(bare_session, "teacher")


def test_schema_change_is_seen_by_next_introspector(seeded: Session):
    with pytest.raises(SchemaError):
        _list(seeded, "remedial_quarter")

    execute_ddl(
        seeded, "ALTER TABLE remedial_quarter ADD COLUMN is_archived INTEGER DEFAULT 0"
    )
    insert_rows(
        seeded,
        "remedial_quarter",
        [{"quarter_id": 1, "quarter_name": "Q1", "is_archived": 1}],
    )
    seeded.commit()

    assert [record.label for record in _list(seeded, "remedial_quarter").records] == [
        "Q1"
    ]
