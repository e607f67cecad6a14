"""Invitation schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.careteam.models import TeamRole


class InvitationCreateRequest(BaseModel):
    """Request to invite someone to the team."""

    email: EmailStr
    invited_name: str = Field(min_length=1, max_length=100)
    role: TeamRole
    department: str | None = Field(default=None, max_length=100)
    personal_message: str | None = Field(default=None, max_length=1000)
    require_professional_verification: bool = False
    require_background_check: bool = False


class InvitationRead(BaseModel):
    """Invitation as seen by the team. Never includes the token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    invited_by: UUID
    invited_email: str
    invited_name: str
    team_role: str
    department: str | None
    status: str
    expires_at: datetime
    reminder_sent_count: int
    last_reminder_sent_at: datetime | None
    ahpra_verification_required: bool
    background_check_required: bool
    created_at: datetime


class InvitationCreateResponse(BaseModel):
    invitation: InvitationRead
    message: str = "Invitation sent successfully"


class InvitationListResponse(BaseModel):
    invitations: list[InvitationRead]
    total: int


class InvitationInfoResponse(BaseModel):
    """Public preview of a live invitation (for the join page)."""

    team_name: str
    practice_name: str | None
    invited_name: str
    team_role: str
    department: str | None
    personal_message: str | None
    expires_at: datetime
    ahpra_verification_required: bool
    background_check_required: bool


class DeclineInvitationRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class InvitationActionResponse(BaseModel):
    message: str
