from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from recovery_center.infrastructure.database.database import get_session
from recovery_center.infrastructure.database.models import SecurityAuditLog
from recovery_center.main import app
from recovery_center.rate_limiting import rate_limiter

ADMIN_HEADERS = {"X-Admin-User": "admin-7"}

# School tables as deployed: some fully migrated, some not
SCHOOL_DDL = (
    """
    CREATE TABLE student (
        student_id INTEGER PRIMARY KEY,
        first_name TEXT,
        last_name TEXT,
        lrn TEXT,
        is_deleted INTEGER DEFAULT 0,
        deleted_at TIMESTAMP,
        delete_reason TEXT,
        deleted_by TEXT,
        updated_at TIMESTAMP
    )
    """,
    # No delete_reason / deleted_by / updated_at yet
    """
    CREATE TABLE parent (
        parent_id INTEGER PRIMARY KEY,
        first_name TEXT,
        email TEXT,
        is_deleted INTEGER DEFAULT 0,
        deleted_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE activities (
        activity_id INTEGER PRIMARY KEY,
        title TEXT,
        subject TEXT,
        type TEXT,
        is_archived INTEGER DEFAULT 0,
        archived_at TIMESTAMP,
        reason TEXT,
        archived_by TEXT
    )
    """,
    # Archive flag never added
    """
    CREATE TABLE remedial_quarter (
        quarter_id INTEGER PRIMARY KEY,
        quarter_name TEXT,
        school_year TEXT
    )
    """,
    # No time column and no default label columns
    """
    CREATE TABLE assessments (
        assessment_id INTEGER PRIMARY KEY,
        name TEXT,
        is_archived INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE attendance_record (
        attendance_id INTEGER PRIMARY KEY,
        student_id INTEGER,
        remarks TEXT,
        is_voided INTEGER DEFAULT 0,
        voided_at TIMESTAMP,
        void_reason TEXT,
        voided_by TEXT
    )
    """,
    """
    CREATE TABLE performance_records (
        record_id TEXT PRIMARY KEY,
        student_id INTEGER,
        grade TEXT,
        is_voided INTEGER DEFAULT 0,
        voided_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE users (
        user_id INTEGER PRIMARY KEY,
        first_name TEXT,
        last_name TEXT,
        name TEXT,
        email TEXT UNIQUE,
        role TEXT,
        status TEXT,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
)

ARCHIVE_WITH_ROLE_DDL = """
    CREATE TABLE archived_users (
        archived_id INTEGER PRIMARY KEY,
        user_id INTEGER,
        role TEXT,
        first_name TEXT,
        last_name TEXT,
        name TEXT,
        email TEXT,
        reason TEXT,
        archived_at TIMESTAMP
    )
"""

ARCHIVE_WITH_ROLE_ID_DDL = (
    """
    CREATE TABLE archived_users (
        archive_id INTEGER PRIMARY KEY,
        user_id INTEGER,
        role_id INTEGER,
        name TEXT,
        email TEXT,
        timestamp TIMESTAMP
    )
    """,
    """
    CREATE TABLE role (
        role_id INTEGER PRIMARY KEY,
        role_name TEXT
    )
    """,
)


def execute_ddl(session: Session, *statements: str) -> None:
    connection = session.connection()
    for statement in statements:
        connection.execute(text(statement))
    session.commit()


def insert_rows(session: Session, table: str, rows: list[dict[str, Any]]) -> None:
    connection = session.connection()
    for values in rows:
        columns = ", ".join(values)
        params = ", ".join(f":{name}" for name in values)
        connection.execute(
            text(f"INSERT INTO {table} ({columns}) VALUES ({params})"), values
        )


def fetch_row(session: Session, table: str, id_column: str, entity_id: Any) -> Any:
    statement = text(f"SELECT * FROM {table} WHERE {id_column} = :id")
    return session.connection().execute(statement, {"id": entity_id}).mappings().first()


# Student 4 shares its LRN with live student 3; student 6 shares one with
# deleted student 1. Parent 12 shares an email (in another case) with live
# parent 11. Archived account 102 uses the email of live user 500.
SEED_ROWS: dict[str, list[dict[str, Any]]] = {
    "student": [
        {
            "student_id": 1,
            "first_name": "Ana",
            "last_name": "Reyes",
            "lrn": "LRN-001",
            "is_deleted": 1,
            "deleted_at": "2024-03-01 08:00:00",
            "delete_reason": "Duplicate enrolment",
            "deleted_by": "admin-1",
        },
        {
            "student_id": 2,
            "first_name": "Ben",
            "last_name": "Cruz",
            "lrn": "LRN-002",
            "is_deleted": 1,
            "deleted_at": "2024-03-03 08:00:00",
        },
        {"student_id": 3, "first_name": "Carla", "lrn": "LRN-003", "is_deleted": 0},
        {
            "student_id": 4,
            "first_name": "Dan",
            "last_name": "Lim",
            "lrn": "LRN-003",
            "is_deleted": 1,
            "deleted_at": "2024-03-02 08:00:00",
        },
        {"student_id": 5, "first_name": "", "lrn": "LRN-005", "is_deleted": 1},
        {
            "student_id": 6,
            "first_name": "Eve",
            "lrn": "LRN-001",
            "is_deleted": 1,
            "deleted_at": "2024-03-04 08:00:00",
        },
    ],
    "parent": [
        {
            "parent_id": 10,
            "first_name": "Grace",
            "email": "grace@example.com",
            "is_deleted": 1,
            "deleted_at": "2024-02-01 09:00:00",
        },
        {"parent_id": 11, "email": "henry@example.com", "is_deleted": 0},
        {
            "parent_id": 12,
            "email": " HENRY@example.com",
            "is_deleted": 1,
            "deleted_at": "2024-02-02 09:00:00",
        },
    ],
    "activities": [
        {
            "activity_id": activity_id,
            "title": title,
            "subject": "English",
            "is_archived": 1,
            "archived_at": archived_at,
            "reason": "End of term",
            "archived_by": "teacher-3",
        }
        for activity_id, title, archived_at in (
            (20, "Reading Drill", "2024-01-10 10:00:00"),
            (21, "Math Quiz", "2024-01-11 10:00:00"),
            (22, "Spelling Bee", "2024-01-12 10:00:00"),
        )
    ],
    "assessments": [
        {"assessment_id": 30, "name": "Quarter Exam", "is_archived": 1},
        {"assessment_id": 31, "name": "Pop Quiz", "is_archived": 1},
    ],
    "attendance_record": [
        {
            "attendance_id": 40,
            "student_id": 1,
            "remarks": "Late",
            "is_voided": 1,
            "voided_at": "2024-04-01 07:30:00",
            "void_reason": "Entered twice",
            "voided_by": "teacher-3",
        },
    ],
    "performance_records": [
        {
            "record_id": "PR-Alpha",
            "student_id": 1,
            "grade": "A",
            "is_voided": 1,
            "voided_at": "2024-04-02 07:30:00",
        },
    ],
    "users": [
        {
            "user_id": 500,
            "first_name": "Live",
            "last_name": "Teacher",
            "email": "taken@example.com",
            "role": "teacher",
            "status": "Active",
        },
    ],
    "archived_users": [
        {
            "archived_id": 100,
            "user_id": 501,
            "role": "Teacher",
            "first_name": "Tess",
            "last_name": "Ramos",
            "email": "tess@example.com",
            "reason": "Resigned",
            "archived_at": "2024-05-01 12:00:00",
        },
        {
            "archived_id": 101,
            "user_id": 502,
            "role": "Master Teacher",
            "name": "Mario Dela Cruz",
            "reason": "Transferred",
            "archived_at": "2024-05-02 12:00:00",
        },
        {
            "archived_id": 102,
            "user_id": 503,
            "role": "teacher",
            "first_name": "Copy",
            "email": "taken@example.com",
            "archived_at": "2024-05-03 12:00:00",
        },
        {
            "archived_id": 103,
            "user_id": 504,
            "role": "principal",
            "first_name": "Pia",
            "email": "pia@example.com",
            "archived_at": "2024-05-04 12:00:00",
        },
    ],
}


@pytest.fixture(autouse=True)
def disable_rate_limiting():
    rate_limiter.disable()
    rate_limiter.reset()
    yield
    rate_limiter.enable()
    rate_limiter.reset()


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    audit_table = SecurityAuditLog.__table__  # type: ignore[attr-defined]
    SQLModel.metadata.create_all(engine, tables=[audit_table])
    yield engine
    engine.dispose()


@pytest.fixture(name="bare_session")
def bare_session_fixture(engine):
    """Session with only the audit table, for building custom schemas."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="session")
def session_fixture(bare_session: Session):
    execute_ddl(bare_session, *SCHOOL_DDL, ARCHIVE_WITH_ROLE_DDL)
    return bare_session


@pytest.fixture(name="seeded")
def seeded_fixture(session: Session) -> Session:
    for table, rows in SEED_ROWS.items():
        insert_rows(session, table, rows)
    session.commit()
    return session


@pytest.fixture(name="client")
def client_fixture(seeded: Session):
    def get_session_override():
        return seeded

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app, headers=ADMIN_HEADERS)
    yield client
    app.dependency_overrides.clear()
