"""Append-only audit log for membership and security actions."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, Index
from sqlmodel import Field, SQLModel

from src.careteam.models.base import JSONType, utc_now
from src.careteam.models.enums import AuditStatus


class AuditLogEntry(SQLModel, table=True):
    """Compliance evidence. No code path updates or deletes these rows."""

    __tablename__ = "care_team_audit_log"
    __table_args__ = (
        Index("ix_care_team_audit_log_team_created", "team_id", "created_at"),
        Index("ix_care_team_audit_log_actor_created", "performed_by", "created_at"),
        Index("ix_care_team_audit_log_type_created", "action_type", "created_at"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    # Context
    team_id: UUID | None = Field(default=None)  # None for account-level actions
    performed_by: UUID | None = Field(default=None)
    target_member_id: UUID | None = Field(default=None)

    # Action details
    action: str = Field(max_length=200)  # Human-readable description
    action_type: str = Field(max_length=30)  # AuditActionType value
    details: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSONType, nullable=True),
    )
    compliance_impact: bool = Field(default=False)

    # Result
    status: str = Field(default=AuditStatus.SUCCESS.value, max_length=20)
    error_message: str | None = Field(default=None, max_length=1000)

    # Request metadata
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = Field(default=None, max_length=500)
    request_id: str | None = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=utc_now)
