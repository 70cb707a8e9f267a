"""Infrastructure layer - Repository implementations."""

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from ...domain.constants import MAX_AUDIT_DETAILS_LENGTH
from .models import SecurityAuditLog


def _to_audit_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _stringify_details(details: Any) -> str | None:
    if details is None:
        return None
    if isinstance(details, str):
        text = details.strip()
    else:
        text = json.dumps(details, default=str, ensure_ascii=False)
    if not text:
        return None
    return text[:MAX_AUDIT_DETAILS_LENGTH]


def parse_details(raw: str | None) -> Any:
    """Decode stored details, keeping non-JSON text as-is."""
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw.strip()


class AuditLogRepository:
    """Repository for security audit log entries."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        action: str,
        user_id: str | int | None,
        ip_address: str | None = None,
        details: Any = None,
    ) -> SecurityAuditLog:
        """Stage an audit entry in the current transaction.

        Nothing is committed here; the entry becomes durable together with
        the change it describes, or not at all.
        """
        entry = SecurityAuditLog(
            action=_to_audit_string(action)[:80] or "unknown_action",
            user_id=_to_audit_string(user_id)[:100] or "unknown",
            ip_address=_to_audit_string(ip_address)[:45] or None,
            details=_stringify_details(details),
            created_at=datetime.now(UTC),
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def _filtered(self, action_prefix: str, entity: str | None):
        statement = select(SecurityAuditLog).where(
            col(SecurityAuditLog.action).startswith(action_prefix, autoescape=True)
        )
        if entity:
            statement = statement.where(
                SecurityAuditLog.action == f"{action_prefix}{entity}"
            )
        return statement

    def count(self, action_prefix: str, entity: str | None = None) -> int:
        statement = self._filtered(action_prefix, entity)
        total = self.session.exec(
            select(func.count()).select_from(statement.subquery())
        ).one()
        return int(total)

    def find_page(
        self,
        action_prefix: str,
        entity: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Sequence[SecurityAuditLog]:
        statement = (
            self._filtered(action_prefix, entity)
            .order_by(
                col(SecurityAuditLog.created_at).desc(),
                col(SecurityAuditLog.log_id).desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        return self.session.exec(statement).all()
