from typing import Any, Final

from sqlmodel import Session

from ..domain.entities import RecoveryEntityConfig, RecoveryPage, clamp_pagination
from ..infrastructure.database.query_builder import RecoveryQueryBuilder
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from ..metrics import record_list_request
from .sources import record_from_row, resolve_recovery_source

logger: Final = get_logger(__name__)


def list_recoverable(
    session: Session,
    introspector: SchemaIntrospector,
    entity: RecoveryEntityConfig,
    page: Any = None,
    page_size: Any = None,
    query: str | None = None,
) -> RecoveryPage:
    """One page of soft-deleted rows for ``entity``, newest first.

    ``page`` and ``page_size`` are parsed leniently; the count and the page
    share one filter so ``total`` always describes the rows being paged.

    Raises:
        SchemaError: If the entity's table or required columns are missing
    """
    page_number, size = clamp_pagination(page, page_size)
    search = (query or "").strip() or None

    source = resolve_recovery_source(session, introspector, entity)
    record_list_request(entity.key)

    if source.is_empty:
        return RecoveryPage(page=page_number, page_size=size, total=0, records=[])

    builder = RecoveryQueryBuilder(source)
    connection = session.connection()

    total = int(connection.execute(builder.count_statement(search)).scalar_one())
    rows = connection.execute(
        builder.page_statement(search, limit=size, offset=(page_number - 1) * size)
    ).mappings()
    records = [record_from_row(row, source) for row in rows]

    logger.debug(
        "Recovery list loaded",
        entity=entity.key,
        page=page_number,
        page_size=size,
        total=total,
        searched=search is not None,
    )
    return RecoveryPage(page=page_number, page_size=size, total=total, records=records)
