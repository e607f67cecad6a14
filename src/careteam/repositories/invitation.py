"""Repository for TeamInvitation.

Every status transition is a conditional UPDATE guarded by
status='pending', so two concurrent callers can never both move the same
invitation out of PENDING.
"""

from datetime import datetime
from typing import Any, cast
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.careteam.models import InvitationStatus, TeamInvitation
from src.careteam.models.base import utc_now
from src.careteam.repositories.base import BaseRepository

_PENDING = InvitationStatus.PENDING.value


def _rowcount(result: Any) -> int:
    return cast(CursorResult[Any], result).rowcount or 0


class TeamInvitationRepository(BaseRepository[TeamInvitation]):
    model = TeamInvitation

    async def get_valid_by_hash(
        self, token_hash: str, now: datetime | None = None
    ) -> TeamInvitation | None:
        """Pending, unexpired invitation for this token hash."""
        result = await self.session.execute(
            select(TeamInvitation).where(
                TeamInvitation.token_hash == token_hash,
                TeamInvitation.status == _PENDING,
                TeamInvitation.expires_at > (now or utc_now()),
            )
        )
        return result.scalar_one_or_none()

    async def get_in_team(self, team_id: UUID, invitation_id: UUID) -> TeamInvitation | None:
        result = await self.session.execute(
            select(TeamInvitation).where(
                TeamInvitation.id == invitation_id,
                TeamInvitation.team_id == team_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_pending_for_email(self, team_id: UUID, email: str) -> TeamInvitation | None:
        result = await self.session.execute(
            select(TeamInvitation).where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.invited_email == email,
                TeamInvitation.status == _PENDING,
            )
        )
        return result.scalars().first()

    async def list_live_pending(
        self, team_id: UUID, now: datetime | None = None
    ) -> list[TeamInvitation]:
        result = await self.session.execute(
            select(TeamInvitation)
            .where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.status == _PENDING,
                TeamInvitation.expires_at > (now or utc_now()),
            )
            .order_by(TeamInvitation.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def claim_for_acceptance(
        self, invitation_id: UUID, user_id: UUID, now: datetime
    ) -> bool:
        """PENDING -> ACCEPTED if still pending and unexpired at `now`."""
        result = await self.session.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id == invitation_id,  # type: ignore[arg-type]
                TeamInvitation.status == _PENDING,  # type: ignore[arg-type]
                TeamInvitation.expires_at > now,  # type: ignore[arg-type]
            )
            .values(
                status=InvitationStatus.ACCEPTED.value,
                accepted_at=now,
                accepted_by=user_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return _rowcount(result) == 1

    async def mark_declined(
        self, invitation_id: UUID, reason: str | None, now: datetime
    ) -> bool:
        result = await self.session.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id == invitation_id,  # type: ignore[arg-type]
                TeamInvitation.status == _PENDING,  # type: ignore[arg-type]
                TeamInvitation.expires_at > now,  # type: ignore[arg-type]
            )
            .values(
                status=InvitationStatus.DECLINED.value,
                declined_at=now,
                declined_reason=reason,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return _rowcount(result) == 1

    async def mark_cancelled(self, invitation_id: UUID, now: datetime) -> bool:
        result = await self.session.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id == invitation_id,  # type: ignore[arg-type]
                TeamInvitation.status == _PENDING,  # type: ignore[arg-type]
            )
            .values(
                status=InvitationStatus.CANCELLED.value,
                cancelled_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return _rowcount(result) == 1

    async def rotate_token(
        self,
        invitation_id: UUID,
        token_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Swap in a new token for a live invitation and count the reminder."""
        result = await self.session.execute(
            update(TeamInvitation)
            .where(
                TeamInvitation.id == invitation_id,  # type: ignore[arg-type]
                TeamInvitation.status == _PENDING,  # type: ignore[arg-type]
                TeamInvitation.expires_at > now,  # type: ignore[arg-type]
            )
            .values(
                token_hash=token_hash,
                expires_at=expires_at,
                reminder_sent_count=TeamInvitation.reminder_sent_count + 1,
                last_reminder_sent_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return _rowcount(result) == 1

    async def expire_stale(
        self,
        now: datetime | None = None,
        team_id: UUID | None = None,
        email: str | None = None,
    ) -> int:
        """Flip pending invitations whose expiry has passed to EXPIRED.

        Optionally narrowed to one team and email. Idempotent.
        """
        now = now or utc_now()
        stmt = update(TeamInvitation).where(
            TeamInvitation.status == _PENDING,  # type: ignore[arg-type]
            TeamInvitation.expires_at <= now,  # type: ignore[arg-type]
        )
        if team_id is not None:
            stmt = stmt.where(TeamInvitation.team_id == team_id)  # type: ignore[arg-type]
        if email is not None:
            stmt = stmt.where(TeamInvitation.invited_email == email)  # type: ignore[arg-type]
        result = await self.session.execute(
            stmt.values(status=InvitationStatus.EXPIRED.value, updated_at=now).execution_options(
                synchronize_session=False
            )
        )
        return _rowcount(result)
