import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlmodel import Session

from ..domain.constants import RESTORE_ACTION_PREFIX
from ..domain.entities import clamp_pagination
from ..domain.registry import find_recovery_entity
from ..infrastructure.database.repositories import AuditLogRepository, parse_details


@dataclass
class RestoreHistoryEntry:
    log_id: int | None
    entity: str
    action: str
    user_id: str
    ip_address: str | None
    created_at: datetime
    details: Any


@dataclass
class RestoreHistoryPage:
    page: int
    page_size: int
    total: int
    entries: list[RestoreHistoryEntry]

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))


def list_restore_history(
    session: Session,
    page: Any = None,
    page_size: Any = None,
    entity: str | None = None,
) -> RestoreHistoryPage:
    """Audited restores, newest first, optionally for one entity.

    An unknown entity key simply matches nothing.
    """
    page_number, size = clamp_pagination(page, page_size)
    entity_key = None
    if entity and entity.strip():
        config = find_recovery_entity(entity)
        entity_key = config.key if config else entity.strip().lower()

    repository = AuditLogRepository(session)
    total = repository.count(RESTORE_ACTION_PREFIX, entity_key)
    logs = repository.find_page(
        RESTORE_ACTION_PREFIX,
        entity_key,
        limit=size,
        offset=(page_number - 1) * size,
    )

    entries = [
        RestoreHistoryEntry(
            log_id=log.log_id,
            entity=log.action.removeprefix(RESTORE_ACTION_PREFIX),
            action=log.action,
            user_id=log.user_id,
            ip_address=log.ip_address,
            created_at=log.created_at,
            details=parse_details(log.details),
        )
        for log in logs
    ]
    return RestoreHistoryPage(
        page=page_number, page_size=size, total=total, entries=entries
    )
