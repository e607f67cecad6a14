"""Tests for team capability checks."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from src.careteam.core.exceptions import PermissionDeniedError
from src.careteam.core.security import Principal
from src.careteam.models import TeamRole
from src.careteam.services.access_policy import AccessPolicy, TeamCapability, is_allowed
from tests.factories import TeamFactory, TeamMemberFactory

pytestmark = pytest.mark.unit


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id=uuid4(), email="staff@example.com")


@pytest.fixture
def team():
    return TeamFactory.build()


def member_of(team, principal, role: TeamRole, **kwargs):
    return TeamMemberFactory.with_role(role, team_id=team.id, user_id=principal.user_id, **kwargs)


class TestIsAllowed:
    @pytest.mark.parametrize("capability", list(TeamCapability))
    def test_owner_may_do_anything(self, team, capability):
        owner = Principal(user_id=team.owner_id, email="owner@example.com")

        assert is_allowed(team, owner, None, capability)

    @pytest.mark.parametrize("capability", list(TeamCapability))
    def test_stranger_may_do_nothing(self, team, principal, capability):
        assert not is_allowed(team, principal, None, capability)

    def test_any_active_member_may_view(self, team, principal):
        membership = member_of(team, principal, TeamRole.RECEPTIONIST)

        assert is_allowed(team, principal, membership, TeamCapability.VIEW_TEAM)
        assert not is_allowed(team, principal, membership, TeamCapability.INVITE_MEMBERS)

    def test_manager_defaults_grant_invite_and_manage(self, team, principal):
        membership = member_of(team, principal, TeamRole.MANAGER)

        assert is_allowed(team, principal, membership, TeamCapability.INVITE_MEMBERS)
        assert is_allowed(team, principal, membership, TeamCapability.MANAGE_MEMBERS)
        assert is_allowed(team, principal, membership, TeamCapability.VIEW_AUDIT_LOG)
        assert not is_allowed(team, principal, membership, TeamCapability.MANAGE_TEAM)

    def test_explicit_flag_grants_capability(self, team, principal):
        membership = member_of(team, principal, TeamRole.NURSE)
        membership.permissions = {**membership.permissions, "invite_members": True}

        assert is_allowed(team, principal, membership, TeamCapability.INVITE_MEMBERS)
        assert not is_allowed(team, principal, membership, TeamCapability.MANAGE_MEMBERS)

    def test_compliance_role_reads_audit_log(self, team, principal):
        membership = member_of(team, principal, TeamRole.COMPLIANCE)

        assert is_allowed(team, principal, membership, TeamCapability.VIEW_AUDIT_LOG)
        assert not is_allowed(team, principal, membership, TeamCapability.INVITE_MEMBERS)

    def test_access_level_at_manager_rank_grants(self, team, principal):
        membership = member_of(team, principal, TeamRole.NURSE, access_level=80)

        assert is_allowed(team, principal, membership, TeamCapability.MANAGE_MEMBERS)

    def test_inactive_membership_denied(self, team, principal):
        membership = member_of(team, principal, TeamRole.MANAGER, is_active=False)

        assert not is_allowed(team, principal, membership, TeamCapability.VIEW_TEAM)

    def test_membership_of_other_team_denied(self, team, principal):
        membership = TeamMemberFactory.with_role(
            TeamRole.MANAGER, team_id=uuid4(), user_id=principal.user_id
        )

        assert not is_allowed(team, principal, membership, TeamCapability.INVITE_MEMBERS)


class TestAccessPolicy:
    async def test_require_returns_membership(self, team, principal):
        membership = member_of(team, principal, TeamRole.MANAGER)
        repo = MagicMock()
        repo.get_active_membership = AsyncMock(return_value=membership)

        result = await AccessPolicy(repo).require(team, principal, TeamCapability.INVITE_MEMBERS)

        assert result is membership
        repo.get_active_membership.assert_awaited_once_with(team.id, principal.user_id)

    async def test_require_raises_when_denied(self, team, principal):
        repo = MagicMock()
        repo.get_active_membership = AsyncMock(return_value=None)

        with pytest.raises(PermissionDeniedError):
            await AccessPolicy(repo).require(team, principal, TeamCapability.INVITE_MEMBERS)
