import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import Request

from .request_utils import get_client_ip


def log_recovery_action(
    action: str,
    entity: str,
    actor: str,
    logger_name: str = "recovery_actions",
    **kwargs: Any,
) -> None:
    """Log recovery actions with consistent structure.

    Args:
        action: The action being performed (e.g., 'preview', 'restore')
        entity: Recovery entity key the action targets
        actor: Administrator id performing the action
        logger_name: Name of the logger to use
        **kwargs: Additional context data (counts, ids)
    """
    logger = logging.getLogger(logger_name)

    log_data = {
        "action": action,
        "entity": entity,
        "actor": actor,
        "timestamp": datetime.now(UTC).isoformat(),
        **kwargs,
    }

    logger.info(f"Recovery {action} on {entity} by {actor}", extra=log_data)


def log_api_request(
    request: Request,
    response_status: int,
    process_time_ms: float | None = None,
    logger_name: str = "api",
) -> None:
    """Log API requests with consistent format.

    Args:
        request: FastAPI request object
        response_status: HTTP response status code
        process_time_ms: Request processing time in milliseconds
        logger_name: Name of the logger to use
    """
    logger = logging.getLogger(logger_name)

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response_status,
        "client_ip": get_client_ip(request),
        "request_id": getattr(request.state, "request_id", None),
    }

    if process_time_ms is not None:
        log_data["process_time_ms"] = str(round(process_time_ms, 2))

    if response_status >= 500:
        log_level = logging.ERROR
    elif response_status >= 400:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO

    message = f"{request.method} {request.url.path} - {response_status}"
    if process_time_ms is not None:
        message += f" ({process_time_ms:.1f}ms)"

    logger.log(log_level, message, extra=log_data)


def log_system_info(hostname: str, database_url: str, debug_mode: bool) -> None:
    """Log system startup information.

    Args:
        hostname: Server hostname
        database_url: Configured database URL (credentials are masked)
        debug_mode: Whether debug mode is enabled
    """
    logger = logging.getLogger("system")

    logger.info(
        "Application startup",
        extra={
            "hostname": hostname,
            "database": mask_database_url(database_url),
            "debug_mode": debug_mode,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


def mask_database_url(url: str) -> str:
    """Hide the password part of a database URL."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


def log_validation_error(
    field: str, value: Any, error_message: str, logger_name: str = "validation"
) -> None:
    """Log validation errors with context.

    Args:
        field: Field name that failed validation
        value: The invalid value (will be sanitized)
        error_message: Validation error message
        logger_name: Name of the logger to use
    """
    logger = logging.getLogger(logger_name)

    safe_value = str(value)[:100] if not _is_sensitive_field(field) else "[REDACTED]"

    logger.warning(
        f"Validation failed for field '{field}': {error_message}",
        extra={"field": field, "value": safe_value, "error": error_message},
    )


def _is_sensitive_field(field_name: str) -> bool:
    """Check if a field contains sensitive data that should not be logged."""
    sensitive_fields = {
        "password",
        "secret",
        "token",
        "credential",
        "session",
        "cookie",
    }

    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in sensitive_fields)
