"""Team and membership schemas."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.careteam.models import TeamRole


class TeamCreate(BaseModel):
    """Request to provision a team owned by the caller."""

    team_name: str = Field(min_length=1, max_length=100)
    practice_name: str | None = Field(default=None, max_length=200)
    team_description: str | None = Field(default=None, max_length=1000)
    ahpra_practice_number: str | None = Field(default=None, max_length=50)
    max_team_size: int | None = Field(default=None, ge=1, le=500)


class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    team_name: str
    practice_name: str | None
    team_description: str | None
    ahpra_practice_number: str | None
    max_team_size: int
    current_team_size: int
    compliance_settings: dict[str, Any]
    is_active: bool
    created_at: datetime


class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    team_id: UUID
    user_id: UUID
    invited_email: str
    team_role: str
    display_name: str | None
    department: str | None
    permissions: dict[str, Any]
    access_level: int
    start_date: date | None
    end_date: date | None
    is_active: bool
    last_login_at: datetime | None
    invitation_accepted_at: datetime | None
    notes: str | None


class TeamMemberListResponse(BaseModel):
    members: list[TeamMemberRead]
    total: int


class PermissionsUpdate(BaseModel):
    """Partial permission flags; omitted flags keep their current value."""

    manage_team: bool | None = None
    invite_members: bool | None = None
    view_audit_log: bool | None = None
    manage_content: bool | None = None
    view_analytics: bool | None = None


NON_NULLABLE_MEMBER_FIELDS = ("team_role", "permissions", "access_level", "is_active")


class TeamMemberUpdate(BaseModel):
    """Partial member update. Only fields that are set are applied."""

    model_config = ConfigDict(extra="forbid")

    team_role: TeamRole | None = None
    permissions: PermissionsUpdate | None = None
    access_level: int | None = Field(default=None, ge=0, le=100)
    department: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None
    notes: str | None = Field(default=None, max_length=1000)

    def to_updates(self) -> dict[str, Any]:
        """Fields the client set. An explicit null only clears `department` or `notes`."""
        updates = self.model_dump(exclude_unset=True, mode="json")
        for field in NON_NULLABLE_MEMBER_FIELDS:
            if field in updates and updates[field] is None:
                del updates[field]
        if self.permissions is not None:
            updates["permissions"] = self.permissions.model_dump(exclude_none=True)
        return updates
