"""RFC 7807 Problem Details for HTTP APIs."""

from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PROBLEM_TYPE_BASE: Final = "/problems/"


class ErrorCodes:
    """Machine-readable problem codes. Field codes come from the domain errors."""

    VALIDATION_FAILED: Final = "validation_failed"
    UNKNOWN_ENTITY: Final = "unknown_entity"
    RESOURCE_ALREADY_EXISTS: Final = "resource_already_exists"
    RESTORE_CONFLICT: Final = "restore_conflict"
    AUTHENTICATION_REQUIRED: Final = "authentication_required"
    SCHEMA_UNAVAILABLE: Final = "schema_unavailable"
    INTERNAL_ERROR: Final = "internal_error"


class ProblemDetail(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str = Field(description="URI reference identifying the problem type")
    title: str = Field(description="Short, human-readable summary of the problem")
    status: int = Field(description="HTTP status code")
    detail: str | None = Field(
        default=None, description="Explanation specific to this occurrence"
    )
    instance: str | None = Field(
        default=None, description="Request path that caused the problem"
    )
    code: str | None = Field(default=None, description="Machine-readable error code")


class ValidationProblemDetail(ProblemDetail):
    errors: list[dict[str, str]] | None = None


class ConflictProblemDetail(ProblemDetail):
    resource_type: str | None = None
    conflicting_field: str | None = None
    blocked_ids: list[str] | None = None


def _problem_type(slug: str) -> str:
    return f"{PROBLEM_TYPE_BASE}{slug}"


class ProblemDetailFactory:
    """Builds the problem responses the API emits."""

    @staticmethod
    def validation_failed(
        detail: str,
        instance: str | None = None,
        field_errors: list[dict[str, str]] | None = None,
    ) -> ValidationProblemDetail:
        return ValidationProblemDetail(
            type=_problem_type("validation-failed"),
            title="Validation Failed",
            status=400,
            detail=detail,
            instance=instance,
            code=ErrorCodes.VALIDATION_FAILED,
            errors=field_errors or [],
        )

    @staticmethod
    def unknown_entity(
        detail: str, instance: str | None = None
    ) -> ValidationProblemDetail:
        return ValidationProblemDetail(
            type=_problem_type("unknown-entity"),
            title="Unknown Entity",
            status=400,
            detail=detail,
            instance=instance,
            code=ErrorCodes.UNKNOWN_ENTITY,
            errors=[
                {
                    "field": "entity",
                    "code": ErrorCodes.UNKNOWN_ENTITY,
                    "message": detail,
                }
            ],
        )

    @staticmethod
    def authentication_required(
        detail: str, instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("authentication-required"),
            title="Authentication Required",
            status=401,
            detail=detail,
            instance=instance,
            code=ErrorCodes.AUTHENTICATION_REQUIRED,
        )

    @staticmethod
    def resource_already_exists(
        resource_type: str,
        detail: str,
        instance: str | None = None,
        conflicting_field: str | None = None,
    ) -> ConflictProblemDetail:
        return ConflictProblemDetail(
            type=_problem_type("resource-already-exists"),
            title="Resource Already Exists",
            status=409,
            detail=detail,
            instance=instance,
            code=ErrorCodes.RESOURCE_ALREADY_EXISTS,
            resource_type=resource_type,
            conflicting_field=conflicting_field,
        )

    @staticmethod
    def restore_conflict(
        resource_type: str,
        detail: str,
        blocked_ids: list[str],
        instance: str | None = None,
    ) -> ConflictProblemDetail:
        return ConflictProblemDetail(
            type=_problem_type("restore-conflict"),
            title="Restore Conflict",
            status=409,
            detail=detail,
            instance=instance,
            code=ErrorCodes.RESTORE_CONFLICT,
            resource_type=resource_type,
            blocked_ids=blocked_ids,
        )

    @staticmethod
    def schema_unavailable(detail: str, instance: str | None = None) -> ProblemDetail:
        # The message names the missing table or column for the operator
        return ProblemDetail(
            type=_problem_type("schema-unavailable"),
            title="Schema Unavailable",
            status=500,
            detail=detail,
            instance=instance,
            code=ErrorCodes.SCHEMA_UNAVAILABLE,
        )

    @staticmethod
    def internal_server_error(
        detail: str = "An unexpected error occurred.", instance: str | None = None
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("internal-server-error"),
            title="Internal Server Error",
            status=500,
            detail=detail,
            instance=instance,
            code=ErrorCodes.INTERNAL_ERROR,
        )


def problem_content(problem: ProblemDetail) -> dict[str, Any]:
    return problem.model_dump(by_alias=True, exclude_none=True)
