"""Repository for AuditLogEntry. Insert and read only."""

from uuid import UUID

from sqlmodel import select

from src.careteam.models import AuditLogEntry
from src.careteam.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLogEntry]):
    model = AuditLogEntry

    async def list_by_team(
        self,
        team_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
        action_type: str | None = None,
        performed_by: UUID | None = None,
    ) -> tuple[list[AuditLogEntry], str | None, bool]:
        """List audit entries for a team with cursor pagination.

        Returns:
            Tuple of (entries, next_cursor, has_more)
        """
        query = select(AuditLogEntry).where(AuditLogEntry.team_id == team_id)

        if action_type:
            query = query.where(AuditLogEntry.action_type == action_type)
        if performed_by:
            query = query.where(AuditLogEntry.performed_by == performed_by)

        return await self.paginate_newest_first(query, cursor, limit)

