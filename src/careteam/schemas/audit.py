"""Audit log read models."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from src.careteam.schemas.pagination import PaginatedResponse


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID | None
    performed_by: UUID | None
    target_member_id: UUID | None
    action: str
    action_type: str
    details: dict[str, Any] | None
    compliance_impact: bool
    status: str
    error_message: str | None
    ip_address: str | None
    user_agent: str | None
    request_id: str | None
    created_at: datetime


class AuditLogListResponse(PaginatedResponse[AuditLogRead]):
    """Newest entries first."""
