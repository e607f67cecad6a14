"""Team invitation model."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from src.careteam.models.base import utc_now
from src.careteam.models.enums import InvitationStatus


class TeamInvitation(SQLModel, table=True):
    """Invitation to join a team.

    Only the SHA-256 hash of the token is stored. At most one PENDING
    invitation exists per (team, email), enforced by a partial unique index.
    """

    __tablename__ = "care_team_invitations"
    __table_args__ = (
        Index("ix_care_team_invitations_team_status", "team_id", "status"),
        Index("ix_care_team_invitations_status_expires", "status", "expires_at"),
        Index(
            "uq_care_team_invitations_pending_email",
            "team_id",
            "invited_email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    team_id: UUID = Field(foreign_key="care_teams.id", index=True)
    invited_by: UUID
    invited_email: str = Field(max_length=255)  # Stored lower-cased
    invited_name: str = Field(max_length=100)
    team_role: str = Field(max_length=30)
    department: str | None = Field(default=None, max_length=100)
    personal_message: str | None = Field(default=None, max_length=1000)

    token_hash: str = Field(max_length=64, unique=True, index=True)
    status: str = Field(default=InvitationStatus.PENDING.value, max_length=20)
    expires_at: datetime

    accepted_at: datetime | None = Field(default=None)
    accepted_by: UUID | None = Field(default=None)
    declined_at: datetime | None = Field(default=None)
    declined_reason: str | None = Field(default=None, max_length=500)
    cancelled_at: datetime | None = Field(default=None)

    reminder_sent_count: int = Field(default=0)
    last_reminder_sent_at: datetime | None = Field(default=None)

    compliance_acknowledgment_required: bool = Field(default=True)
    ahpra_verification_required: bool = Field(default=False)
    background_check_required: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def status_enum(self) -> InvitationStatus:
        return InvitationStatus(self.status)

    def is_live(self, now: datetime | None = None) -> bool:
        """Pending and not yet expired. Expiry is exclusive."""
        now = now or utc_now()
        return self.status == InvitationStatus.PENDING.value and self.expires_at > now
