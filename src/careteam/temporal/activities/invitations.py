"""Invitation maintenance activities."""

from temporalio import activity

from src.careteam.core.db import get_session
from src.careteam.repositories import TeamInvitationRepository


@activity.defn
async def expire_stale_invitations() -> int:
    """
    Flip pending invitations past their expiry to EXPIRED.

    Idempotent: the UPDATE only matches rows still pending, so a retry after
    a partial failure finds nothing left to change.

    Returns:
        Number of invitations expired
    """
    activity.logger.info("Expiring stale invitations")

    async with get_session() as session:
        repo = TeamInvitationRepository(session)
        count = await repo.expire_stale()
        await session.commit()

    activity.logger.info(f"Expired {count} stale invitations")
    return count
