import socket
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .domain.exceptions import DomainError
from .infrastructure.database.database import get_main_engine, init_db
from .logging_config import get_logger, setup_logging
from .logging_utils import log_system_info
from .middleware import log_requests_middleware
from .presentation.api_routes import api_router
from .presentation.error_handlers import (
    handle_database_error,
    handle_domain_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from .rate_limiting import rate_limit_middleware
from .telemetry import setup_telemetry


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    # Only the audit table is ours; the school tables are read as they are
    init_db(get_main_engine())

    log_system_info(socket.gethostname(), settings.database_url, settings.debug)

    yield

    logger.info("Application shutdown completed")


app: Final = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
    description="""
**Recovery Center** - Emergency restore of soft-deleted school records.

## What it recovers

- **Deleted** accounts and students (`is_deleted` flag)
- **Archived** activities, quarters, schedules and assessments (`is_archived`)
- **Voided** attendance and performance records (`is_voided`)
- **Archived accounts** moved into the shared archive table, restored back
  into the live users table

The engine reads column names from the live database on every request, so
partially migrated tables are handled without configuration.

## Restore workflow

1. `GET /list` to find candidates
2. `POST /preview` to see which ids are recoverable, blocked or missing
3. `POST /restore` with a reason, an approval note and the phrase `RESTORE`

Every restore is written to the security audit log in the same transaction;
see `GET /history`.

## Rate Limiting

- **Reads**: 100 requests per minute per IP
- **Previews**: 30 requests per minute per IP
- **Restores**: 10 requests per minute per IP

## Authentication

Requests must carry the administrator id in the identity header set by the
upstream session service.
    """.strip(),
    openapi_tags=[
        {
            "name": "recovery",
            "description": "List, preview and restore soft-deleted records",
        },
    ],
)

setup_telemetry(app)

# Order matters: rate limiting runs inside request logging
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(log_requests_middleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Global handler for domain-specific errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Domain error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
    )
    return handle_domain_error(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return handle_request_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    return handle_database_error(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    return handle_unexpected_error(exc, request)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok", "service": settings.app_name, "version": settings.version}


app.include_router(api_router)
