"""Repositories for Team and TeamMember."""

from datetime import date
from typing import Any, cast
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.careteam.models import Team, TeamMember
from src.careteam.models.base import utc_now
from src.careteam.repositories.base import BaseRepository


class TeamRepository(BaseRepository[Team]):
    model = Team

    async def get_active_by_owner(self, owner_id: UUID) -> Team | None:
        result = await self.session.execute(
            select(Team).where(
                Team.owner_id == owner_id,
                Team.is_active == True,  # noqa: E712
            )
        )
        return result.scalars().first()

    async def get_active_for_member(self, user_id: UUID) -> Team | None:
        """First active team the principal is an active member of."""
        result = await self.session.execute(
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)  # type: ignore[arg-type]
            .where(
                TeamMember.user_id == user_id,
                TeamMember.is_active == True,  # noqa: E712
                Team.is_active == True,  # noqa: E712
            )
            .order_by(TeamMember.created_at)  # type: ignore[arg-type]
        )
        return result.scalars().first()

    async def adjust_size(self, team_id: UUID, delta: int) -> int:
        """Atomically add `delta` to current_team_size.

        A single UPDATE ... SET col = col + delta, so concurrent callers
        never lose each other's changes. Returns rows matched.
        """
        result = await self.session.execute(
            update(Team)
            .where(Team.id == team_id)  # type: ignore[arg-type]
            .values(
                current_team_size=Team.current_team_size + delta,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return cast(CursorResult[Any], result).rowcount or 0

    async def reserve_seat(self, team_id: UUID) -> bool:
        """Atomically increment current_team_size if the team has room."""
        result = await self.session.execute(
            update(Team)
            .where(
                Team.id == team_id,  # type: ignore[arg-type]
                Team.is_active == True,  # type: ignore[arg-type]  # noqa: E712
                Team.current_team_size < Team.max_team_size,  # type: ignore[arg-type]
            )
            .values(
                current_team_size=Team.current_team_size + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return (cast(CursorResult[Any], result).rowcount or 0) == 1


class TeamMemberRepository(BaseRepository[TeamMember]):
    model = TeamMember

    async def get_in_team(self, team_id: UUID, member_id: UUID) -> TeamMember | None:
        result = await self.session.execute(
            select(TeamMember).where(
                TeamMember.id == member_id,
                TeamMember.team_id == team_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_membership(self, team_id: UUID, user_id: UUID) -> TeamMember | None:
        result = await self.session.execute(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
                TeamMember.is_active == True,  # noqa: E712
            )
        )
        return result.scalars().first()

    async def get_active_by_email(self, team_id: UUID, email: str) -> TeamMember | None:
        result = await self.session.execute(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                func.lower(TeamMember.invited_email) == email.lower(),
                TeamMember.is_active == True,  # noqa: E712
            )
        )
        return result.scalars().first()

    async def list_active(self, team_id: UUID) -> list[TeamMember]:
        result = await self.session.execute(
            select(TeamMember)
            .where(
                TeamMember.team_id == team_id,
                TeamMember.is_active == True,  # noqa: E712
            )
            .order_by(TeamMember.created_at)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def list_active_memberships(self, user_id: UUID) -> list[TeamMember]:
        result = await self.session.execute(
            select(TeamMember).where(
                TeamMember.user_id == user_id,
                TeamMember.is_active == True,  # noqa: E712
            )
        )
        return list(result.scalars().all())

    async def count_active(self, team_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(TeamMember)
            .where(
                TeamMember.team_id == team_id,
                TeamMember.is_active == True,  # noqa: E712
            )
        )
        return int(result.scalar_one())

    async def deactivate(self, member_id: UUID, notes: str, end_date: date) -> int:
        """Soft-delete an active member. Returns 0 if already inactive."""
        result = await self.session.execute(
            update(TeamMember)
            .where(
                TeamMember.id == member_id,  # type: ignore[arg-type]
                TeamMember.is_active == True,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_active=False, end_date=end_date, notes=notes, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return cast(CursorResult[Any], result).rowcount or 0

    async def set_active(self, member_id: UUID, active: bool) -> int:
        """Flip is_active only if it differs. Returns rows changed."""
        now = utc_now()
        result = await self.session.execute(
            update(TeamMember)
            .where(
                TeamMember.id == member_id,  # type: ignore[arg-type]
                TeamMember.is_active == (not active),  # type: ignore[arg-type]
            )
            .values(
                is_active=active,
                end_date=None if active else now.date(),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return cast(CursorResult[Any], result).rowcount or 0

    async def touch_last_login(self, member_id: UUID) -> None:
        await self.session.execute(
            update(TeamMember)
            .where(TeamMember.id == member_id)  # type: ignore[arg-type]
            .values(last_login_at=utc_now())
            .execution_options(synchronize_session=False)
        )
