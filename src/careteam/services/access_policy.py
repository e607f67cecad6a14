"""Capability checks for team operations."""

from enum import Enum

from src.careteam.core.exceptions import PermissionDeniedError
from src.careteam.core.security import Principal
from src.careteam.models import MANAGER_ACCESS_LEVEL, Team, TeamMember
from src.careteam.repositories import TeamMemberRepository


class TeamCapability(str, Enum):
    VIEW_TEAM = "view_team"
    INVITE_MEMBERS = "invite_members"
    MANAGE_MEMBERS = "manage_members"
    VIEW_AUDIT_LOG = "view_audit_log"
    MANAGE_TEAM = "manage_team"


def is_allowed(
    team: Team,
    principal: Principal,
    membership: TeamMember | None,
    capability: TeamCapability,
) -> bool:
    """Pure decision: may `principal` exercise `capability` on `team`?

    The owner may do anything. Otherwise an active membership is required,
    and beyond viewing, either the matching permission flag or an access
    level at manager rank.
    """
    if team.owner_id == principal.user_id:
        return True
    if membership is None or not membership.is_active or membership.team_id != team.id:
        return False
    if capability == TeamCapability.VIEW_TEAM:
        return True
    if capability == TeamCapability.MANAGE_TEAM:
        return False

    permissions = membership.permission_set
    flag = {
        TeamCapability.INVITE_MEMBERS: permissions.invite_members,
        TeamCapability.MANAGE_MEMBERS: permissions.manage_team,
        TeamCapability.VIEW_AUDIT_LOG: permissions.view_audit_log,
    }[capability]
    return flag or membership.access_level >= MANAGER_ACCESS_LEVEL


class AccessPolicy:
    """Loads the caller's membership and enforces a capability."""

    def __init__(self, member_repo: TeamMemberRepository):
        self.member_repo = member_repo

    async def membership_for(self, team: Team, principal: Principal) -> TeamMember | None:
        return await self.member_repo.get_active_membership(team.id, principal.user_id)

    async def require(
        self,
        team: Team,
        principal: Principal,
        capability: TeamCapability,
    ) -> TeamMember | None:
        """Return the caller's membership (None for an owner without one).

        Raises:
            PermissionDeniedError: If the capability is not held.
        """
        membership = await self.membership_for(team, principal)
        if not is_allowed(team, principal, membership, capability):
            raise PermissionDeniedError()
        return membership
