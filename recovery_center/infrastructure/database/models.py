from datetime import UTC, datetime

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from ...constants import AUDIT_TABLE_NAME


class SecurityAuditLog(SQLModel, table=True):  # type: ignore[call-arg]
    """Append-only record of privileged operations such as restores."""

    __tablename__ = AUDIT_TABLE_NAME

    log_id: int | None = Field(default=None, primary_key=True)
    action: str = Field(max_length=80, index=True)
    user_id: str = Field(max_length=100, index=True)
    ip_address: str | None = Field(default=None, max_length=45)
    details: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
