"""Tests for RFC 7807 Problem Details."""

from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from recovery_center.presentation.problem_details import (
    ErrorCodes,
    ProblemDetailFactory,
    problem_content,
)


def test_validation_problem_structure():
    problem = ProblemDetailFactory.validation_failed(
        detail="Request validation failed",
        instance="/api/v1/recovery/restore",
        field_errors=[{"field": "ids", "code": "too_many_items", "message": "x"}],
    )

    content = problem_content(problem)
    assert content["type"] == "/problems/validation-failed"
    assert content["title"] == "Validation Failed"
    assert content["status"] == 400
    assert content["code"] == ErrorCodes.VALIDATION_FAILED
    assert content["errors"][0]["field"] == "ids"


def test_restore_conflict_problem_carries_blocked_ids():
    problem = ProblemDetailFactory.restore_conflict(
        resource_type="recovery_record", detail="blocked", blocked_ids=["4", "6"]
    )

    content = problem_content(problem)
    assert content["status"] == 409
    assert content["blockedIds"] == ["4", "6"]
    assert content["resourceType"] == "recovery_record"
    assert "blocked_ids" not in content
    assert "instance" not in content
    assert "conflictingField" not in content


def test_schema_unavailable_is_server_error():
    problem = ProblemDetailFactory.schema_unavailable("Column 'x' is missing.")
    assert problem.status == 500
    assert problem.code == ErrorCodes.SCHEMA_UNAVAILABLE
    assert problem.detail == "Column 'x' is missing."


def test_database_integrity_error_returns_409(client: TestClient, monkeypatch):
    def fail(*args, **kwargs):
        raise IntegrityError("INSERT INTO users", {}, Exception("UNIQUE failed"))

    monkeypatch.setattr(
        "recovery_center.application.restore_service.restore_archived_accounts",
        fail,
    )

    response = client.post(
        "/api/v1/recovery/restore",
        json={
            "entity": "teacher",
            "ids": ["100"],
            "reason": "Returned from leave",
            "approvalNote": "Approved",
            "confirmPhrase": "RESTORE",
        },
    )

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == ErrorCodes.RESOURCE_ALREADY_EXISTS
    assert "UNIQUE" not in data["detail"]


def test_database_failure_returns_500_without_internals(
    client: TestClient, monkeypatch
):
    def fail(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(
        "recovery_center.presentation.api_routes.list_recoverable", fail
    )

    response = client.get("/api/v1/recovery/list", params={"entity": "student"})

    assert response.status_code == 500
    data = response.json()
    assert data["code"] == ErrorCodes.INTERNAL_ERROR
    assert "disk" not in data["detail"]
    assert response.headers["content-type"] == "application/problem+json"
