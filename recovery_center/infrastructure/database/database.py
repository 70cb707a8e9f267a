from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ...config import settings
from ...logging_config import get_logger

logger = get_logger(__name__)


def _get_engine() -> Engine:
    database_url = settings.database_url
    connect_args: dict[str, bool] = {}
    engine_kwargs: dict[str, int | bool] = {}

    if database_url.startswith("sqlite"):
        # Sync endpoints run in FastAPI's threadpool
        connect_args["check_same_thread"] = False
    elif "postgresql" in database_url or "mysql" in database_url:
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_size"] = 10
        engine_kwargs["max_overflow"] = 20
        engine_kwargs["pool_recycle"] = 3600

    return create_engine(
        database_url,
        connect_args=connect_args,
        **engine_kwargs,
    )


def init_db(engine: Engine) -> None:
    """Create the tables this service owns (the audit log).

    The school tables being recovered are managed elsewhere and are never
    created here.
    """
    from .models import SecurityAuditLog

    audit_table = SecurityAuditLog.__table__  # type: ignore[attr-defined]
    SQLModel.metadata.create_all(engine, tables=[audit_table])
    logger.info("Audit table ready", table=SecurityAuditLog.__tablename__)


_engine: Engine | None = None


def get_main_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = _get_engine()
    return _engine


def get_session() -> Generator[Session, None, None]:
    """Yield one pooled session per request; it is closed on every exit path."""
    with Session(get_main_engine()) as session:
        yield session
