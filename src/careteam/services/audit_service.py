"""Compliance audit trail for membership, invitation and MFA actions."""

import contextlib
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.logging import get_logger
from src.careteam.core.request_context import get_request_context
from src.careteam.models import AuditActionType, AuditLogEntry, AuditStatus
from src.careteam.repositories import AuditLogRepository

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000


class AuditService:
    """Writes audit entries through the caller's session.

    ``stage`` only adds the entry, so it commits or rolls back together with
    the change it describes. ``log_failure`` commits on its own and never
    raises; use it after the business transaction has been rolled back.
    """

    def __init__(self, audit_repo: AuditLogRepository, session: AsyncSession):
        self.audit_repo = audit_repo
        self.session = session

    def stage(
        self,
        action: str,
        action_type: AuditActionType | str,
        performed_by: UUID | None,
        team_id: UUID | None = None,
        target_member_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        compliance_impact: bool = False,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: str | None = None,
    ) -> AuditLogEntry:
        ctx = get_request_context()
        entry = AuditLogEntry(
            team_id=team_id,
            performed_by=performed_by,
            target_member_id=target_member_id,
            action=action,
            action_type=AuditActionType(action_type).value,
            details=details,
            compliance_impact=compliance_impact,
            status=AuditStatus(status).value,
            error_message=error_message[:MAX_ERROR_MESSAGE_LENGTH] if error_message else None,
            ip_address=ctx.ip_address if ctx else None,
            user_agent=ctx.user_agent if ctx else None,
            request_id=ctx.request_id if ctx else None,
        )
        self.audit_repo.add(entry)
        return entry

    async def log_failure(
        self,
        action: str,
        action_type: AuditActionType | str,
        performed_by: UUID | None,
        error_message: str,
        team_id: UUID | None = None,
        target_member_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        compliance_impact: bool = False,
    ) -> AuditLogEntry | None:
        """Record a rejected operation in its own transaction.

        Returns:
            The stored entry, or None when it could not be written.
        """
        entry = self.stage(
            action=action,
            action_type=action_type,
            performed_by=performed_by,
            team_id=team_id,
            target_member_id=target_member_id,
            details=details,
            compliance_impact=compliance_impact,
            status=AuditStatus.FAILURE,
            error_message=error_message,
        )
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.warning("Failed to record audit log", action=action, error=str(e))
            with contextlib.suppress(SQLAlchemyError):
                await self.session.rollback()
            return None
        return entry

    async def list_team_logs(
        self,
        team_id: UUID,
        cursor: str | None = None,
        limit: int = 50,
        action_type: str | None = None,
    ) -> tuple[list[AuditLogEntry], str | None, bool]:
        return await self.audit_repo.list_by_team(
            team_id=team_id, cursor=cursor, limit=limit, action_type=action_type
        )
