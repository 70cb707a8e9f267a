from dataclasses import dataclass, field
from datetime import datetime
from typing import Final

from sqlmodel import Session

from ..domain.constants import RECENT_PER_ENTITY, RECENT_TOTAL
from ..domain.entities import RecoveryEntityConfig, RecoveryRecord
from ..domain.exceptions import SchemaError
from ..domain.registry import RECOVERY_ENTITIES
from ..infrastructure.database.query_builder import RecoveryQueryBuilder
from ..infrastructure.database.schema import SchemaIntrospector
from ..logging_config import get_logger
from .sources import record_from_row, resolve_recovery_source

logger: Final = get_logger(__name__)


@dataclass
class EntityCount:
    entity: str
    table: str
    mode: str
    count: int


@dataclass
class UnavailableEntity:
    entity: str
    reason: str


@dataclass
class RecentRecord:
    entity: str
    record: RecoveryRecord


@dataclass
class RecoverySummary:
    counts: list[EntityCount] = field(default_factory=list)
    unavailable: list[UnavailableEntity] = field(default_factory=list)
    recent: list[RecentRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(item.count for item in self.counts)


def _recent_sort_key(item: RecentRecord) -> tuple[bool, datetime]:
    occurred = item.record.occurred_at
    # Undated rows sort last
    return occurred is not None, occurred or datetime.min


def _summarize_entity(
    session: Session,
    introspector: SchemaIntrospector,
    entity: RecoveryEntityConfig,
    summary: RecoverySummary,
) -> None:
    source = resolve_recovery_source(session, introspector, entity)
    count = 0
    if not source.is_empty:
        builder = RecoveryQueryBuilder(source)
        connection = session.connection()
        count = int(connection.execute(builder.count_statement()).scalar_one())
        if count:
            rows = connection.execute(
                builder.page_statement(limit=RECENT_PER_ENTITY)
            ).mappings()
            summary.recent.extend(
                RecentRecord(entity=entity.key, record=record_from_row(row, source))
                for row in rows
            )

    summary.counts.append(
        EntityCount(
            entity=entity.key, table=source.table, mode=entity.mode.value, count=count
        )
    )


def summarize_recovery(
    session: Session, introspector: SchemaIntrospector
) -> RecoverySummary:
    """Recoverable counts per entity plus the most recent soft deletions.

    Entities whose tables or columns are missing are reported as unavailable
    instead of failing the whole summary.
    """
    summary = RecoverySummary()
    for entity in RECOVERY_ENTITIES:
        try:
            _summarize_entity(session, introspector, entity, summary)
        except SchemaError as e:
            logger.warning(
                "Recovery entity unavailable", entity=entity.key, reason=str(e)
            )
            summary.unavailable.append(
                UnavailableEntity(entity=entity.key, reason=str(e))
            )

    summary.recent.sort(key=_recent_sort_key, reverse=True)
    del summary.recent[RECENT_TOTAL:]

    logger.debug(
        "Recovery summary built",
        total=summary.total,
        unavailable=len(summary.unavailable),
    )
    return summary
