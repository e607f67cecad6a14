"""Care team and membership models."""

from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Column, Index, text
from sqlmodel import Field, SQLModel

from src.careteam.models.base import JSONType, utc_now
from src.careteam.models.enums import TeamRole
from src.careteam.models.team_settings import (
    ComplianceSettings,
    MemberPermissions,
    dump_settings,
)


class Team(SQLModel, table=True):
    """A practice's care team. Never hard-deleted, only deactivated."""

    __tablename__ = "care_teams"
    __table_args__ = (Index("ix_care_teams_owner_active", "owner_id", "is_active"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(index=True)
    team_name: str = Field(max_length=100)
    practice_name: str | None = Field(default=None, max_length=200)
    team_description: str | None = Field(default=None, max_length=1000)
    ahpra_practice_number: str | None = Field(default=None, max_length=50)

    max_team_size: int = Field(default=10)
    # Active members, owner included. Only changed by atomic UPDATEs.
    current_team_size: int = Field(default=0)

    compliance_settings: dict[str, Any] = Field(
        default_factory=lambda: dump_settings(ComplianceSettings()),
        sa_column=Column(JSONType, nullable=False),
    )

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def compliance(self) -> ComplianceSettings:
        return ComplianceSettings.model_validate(self.compliance_settings or {})


class TeamMember(SQLModel, table=True):
    """A principal's membership in a team.

    Rows exist only for accepted invitations (and the owner), so user_id is
    always set. Removal is a soft delete.
    """

    __tablename__ = "care_team_members"
    __table_args__ = (
        Index("ix_care_team_members_team_active", "team_id", "is_active"),
        Index(
            "uq_care_team_members_active_user",
            "team_id",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    team_id: UUID = Field(foreign_key="care_teams.id", index=True)
    user_id: UUID = Field(index=True)
    invited_email: str = Field(max_length=255, index=True)
    invited_by: UUID | None = Field(default=None)

    team_role: str = Field(default=TeamRole.GUEST.value, max_length=30)
    display_name: str | None = Field(default=None, max_length=100)
    ahpra_registration: str | None = Field(default=None, max_length=50)
    profession_type: str | None = Field(default=None, max_length=100)
    department: str | None = Field(default=None, max_length=100)

    permissions: dict[str, Any] = Field(
        default_factory=lambda: dump_settings(MemberPermissions()),
        sa_column=Column(JSONType, nullable=False),
    )
    access_level: int = Field(default=10)

    start_date: date | None = Field(default=None)
    end_date: date | None = Field(default=None)
    is_active: bool = Field(default=True)
    last_login_at: datetime | None = Field(default=None)
    invitation_accepted_at: datetime | None = Field(default=None)
    notes: str | None = Field(default=None, max_length=1000)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def role(self) -> TeamRole:
        return TeamRole(self.team_role)

    @property
    def permission_set(self) -> MemberPermissions:
        return MemberPermissions.model_validate(self.permissions or {})
