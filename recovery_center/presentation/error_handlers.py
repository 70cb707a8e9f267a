"""Centralized error handling for the presentation layer."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.exceptions import (
    AuthenticationError,
    DomainError,
    RecoveryValidationError,
    RestoreConflictError,
    SchemaError,
    UnknownEntityError,
    ValidationError,
)
from ..logging_config import get_logger
from .problem_details import (
    ProblemDetail,
    ProblemDetailFactory,
    problem_content,
)

logger = get_logger(__name__)


def _json(
    problem: ProblemDetail, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem_content(problem),
        media_type="application/problem+json",
        headers=headers,
    )


def _extract_field_errors(error: ValidationError) -> list[dict[str, str]]:
    if isinstance(error, RecoveryValidationError) and error.field:
        return [
            {
                "field": error.field,
                "code": error.code,
                "message": str(error),
            }
        ]
    return []


def handle_domain_error(error: DomainError, request: Request) -> JSONResponse:
    """Convert domain errors to RFC 7807 responses."""
    instance = str(request.url.path)
    problem: ProblemDetail

    if isinstance(error, UnknownEntityError):
        problem = ProblemDetailFactory.unknown_entity(str(error), instance)
    elif isinstance(error, ValidationError):
        problem = ProblemDetailFactory.validation_failed(
            detail=str(error),
            instance=instance,
            field_errors=_extract_field_errors(error),
        )
    elif isinstance(error, AuthenticationError):
        return _json(
            ProblemDetailFactory.authentication_required(str(error), instance),
            headers={"WWW-Authenticate": "Session"},
        )
    elif isinstance(error, RestoreConflictError):
        problem = ProblemDetailFactory.restore_conflict(
            resource_type="recovery_record",
            detail=str(error),
            blocked_ids=error.blocked_ids,
            instance=instance,
        )
    elif isinstance(error, SchemaError):
        logger.error("Recovery schema error", error_message=str(error), path=instance)
        problem = ProblemDetailFactory.schema_unavailable(str(error), instance)
    else:
        logger.error(
            "Unhandled domain error",
            error_type=type(error).__name__,
            error_message=str(error),
            path=instance,
        )
        problem = ProblemDetailFactory.internal_server_error(instance=instance)

    return _json(problem)


def handle_request_validation_error(
    error: RequestValidationError, request: Request
) -> JSONResponse:
    """Convert pydantic request errors to a 400 problem with field errors."""
    field_errors = []
    for item in error.errors():
        field_name = ".".join(
            str(loc) for loc in item["loc"] if loc not in ("body", "query")
        )
        field_errors.append(
            {
                "field": field_name or "unknown",
                "code": item["type"],
                "message": item["msg"],
            }
        )

    logger.warning(
        "Request validation error occurred",
        errors=field_errors,
        path=request.url.path,
        method=request.method,
    )
    problem = ProblemDetailFactory.validation_failed(
        detail="Request validation failed",
        instance=str(request.url.path),
        field_errors=field_errors,
    )
    return _json(problem)


def handle_database_error(error: SQLAlchemyError, request: Request) -> JSONResponse:
    """Database failures surface as 500; constraint violations as 409."""
    logger.error(
        "Database error occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        path=request.url.path,
        method=request.method,
    )

    problem: ProblemDetail
    if isinstance(error, IntegrityError):
        problem = ProblemDetailFactory.resource_already_exists(
            resource_type="record",
            detail="A record with these values already exists.",
            instance=str(request.url.path),
        )
    else:
        problem = ProblemDetailFactory.internal_server_error(
            detail="A database error occurred. Nothing was changed.",
            instance=str(request.url.path),
        )
    return _json(problem)


def handle_unexpected_error(error: Exception, request: Request) -> JSONResponse:
    logger.error(
        "Unexpected error occurred",
        error_type=type(error).__name__,
        error_message=str(error),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    problem = ProblemDetailFactory.internal_server_error(
        detail="An unexpected error occurred. Please try again.",
        instance=str(request.url.path),
    )
    return _json(problem)
