"""Invitation lifecycle against a real database.

Create, accept, decline, cancel, resend and expiry, including the audit
trail each transition leaves behind.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidOrExpiredInvitationError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.careteam.core.security import Principal, hash_token
from src.careteam.models import (
    AuditLogEntry,
    InvitationStatus,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
)
from src.careteam.models.base import utc_now
from tests.helpers import FakeNotifier, Services, fetch, invite, join_team

pytestmark = pytest.mark.integration


async def audit_rows(session: AsyncSession, **filters) -> list[AuditLogEntry]:
    query = select(AuditLogEntry).order_by(AuditLogEntry.created_at)  # type: ignore[arg-type]
    for column, value in filters.items():
        query = query.where(getattr(AuditLogEntry, column) == value)
    result = await session.execute(query)
    return list(result.scalars().all())


async def team_size(session: AsyncSession, team_id) -> int:
    team = await fetch(session, Team, team_id)
    assert team is not None
    return team.current_team_size


class TestCreateInvitation:
    async def test_creates_pending_invitation_and_sends_email(
        self, db_session, services: Services, team, owner, notifier: FakeNotifier
    ):
        invitation_id, token = await invite(
            services, team, owner, email="  Alice@Example.com ", personal_message="Welcome!"
        )

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.status == InvitationStatus.PENDING.value
        assert invitation.invited_email == "alice@example.com"
        assert invitation.team_role == "practitioner"
        assert invitation.token_hash == hash_token(token)
        assert token not in invitation.token_hash
        delta = invitation.expires_at - invitation.created_at
        assert timedelta(days=7) - timedelta(seconds=1) <= delta <= timedelta(days=7)

        assert len(notifier.sent) == 1
        email = notifier.sent[0]
        assert email.to == "alice@example.com"
        assert email.team_name == "Harbour Street Care Team"
        assert email.inviter_name == owner.email
        assert email.join_url.endswith(f"/team/join/{token}")
        assert email.personal_message == "Welcome!"

    async def test_tokens_are_distinct(self, services: Services, team, owner):
        tokens = set()
        for n in range(4):
            _, token = await invite(services, team, owner, email=f"staff{n}@example.com")
            tokens.add(token)

        assert len(tokens) == 4

    async def test_appends_invitation_audit_entry(self, db_session, services, team, owner):
        invitation_id, _ = await invite(services, team, owner)

        rows = await audit_rows(db_session, team_id=team.id, action_type="invitation")
        assert len(rows) == 1
        assert rows[0].performed_by == owner.user_id
        assert rows[0].compliance_impact is True
        assert rows[0].details["invitation_id"] == str(invitation_id)

    async def test_records_verification_requirements(self, db_session, services, team, owner):
        invitation_id, _ = await invite(
            services,
            team,
            owner,
            require_professional_verification=True,
            require_background_check=True,
        )

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.ahpra_verification_required is True
        assert invitation.background_check_required is True

    @pytest.mark.parametrize(
        ("email", "name", "role"),
        [
            ("not-an-email", "Alice", "nurse"),
            ("alice@example.com", "   ", "nurse"),
            ("alice@example.com", "A" * 101, "nurse"),
            ("alice@example.com", "Alice", "surgeon"),
            ("alice@example.com", "Alice", "owner"),
        ],
    )
    async def test_rejects_malformed_input_before_persisting(
        self, db_session, services, team, owner, notifier, email, name, role
    ):
        with pytest.raises(ValidationError):
            await invite(services, team, owner, email=email, invited_name=name, role=role)

        count = await db_session.scalar(select(func.count()).select_from(TeamInvitation))
        assert count == 0
        assert notifier.sent == []

    async def test_missing_team_is_configuration_error(self, services, owner):
        with pytest.raises(ConfigurationError) as exc_info:
            await services.invitations.create_invitation(
                team_id=uuid4(),
                inviter=owner,
                email="alice@example.com",
                invited_name="Alice",
                role=TeamRole.NURSE,
            )

        assert exc_info.value.status_code == 404

    async def test_non_member_cannot_invite_and_refusal_is_audited(
        self, db_session, services, team, mallory
    ):
        with pytest.raises(PermissionDeniedError):
            await invite(services, team, mallory)

        denied = await audit_rows(db_session, performed_by=mallory.user_id)
        assert len(denied) == 1
        assert denied[0].status == "failure"
        assert denied[0].team_id == team.id

    async def test_member_without_invite_permission_is_refused(
        self, services, team, owner
    ):
        nurse = Principal(user_id=uuid4(), email="nurse@example.com")
        await join_team(services, team, owner, nurse, role="nurse")

        with pytest.raises(PermissionDeniedError):
            await invite(services, team, nurse, email="bob@example.com")

    async def test_manager_can_invite(self, services, team, owner, notifier):
        manager = Principal(user_id=uuid4(), email="manager@example.com")
        await join_team(services, team, owner, manager, role="manager")

        await invite(services, team, manager, email="bob@example.com")

        # Display name comes from the manager's membership
        assert notifier.sent[-1].inviter_name == "Alice Nguyen"

    async def test_second_pending_invitation_for_same_email_conflicts(
        self, db_session, services, team, owner
    ):
        await invite(services, team, owner)

        with pytest.raises(ConflictError):
            await invite(services, team, owner, email="ALICE@example.com")

        count = await db_session.scalar(select(func.count()).select_from(TeamInvitation))
        assert count == 1

    async def test_lapsed_invitation_does_not_block_a_new_one(
        self, db_session, services, team, owner
    ):
        first_id, _ = await invite(services, team, owner)
        first = await fetch(db_session, TeamInvitation, first_id)
        first.expires_at = utc_now() - timedelta(seconds=1)
        await db_session.commit()

        second_id, _ = await invite(services, team, owner)

        assert (await fetch(db_session, TeamInvitation, first_id)).status == "expired"
        assert (await fetch(db_session, TeamInvitation, second_id)).status == "pending"

    async def test_existing_member_cannot_be_invited(self, services, team, owner, alice):
        await join_team(services, team, owner, alice)

        with pytest.raises(ConflictError):
            await invite(services, team, owner, email=alice.email)

    async def test_full_team_rejects_new_invitations(self, db_session, services, team, owner):
        stored = await fetch(db_session, Team, team.id)
        stored.current_team_size = stored.max_team_size
        await db_session.commit()

        with pytest.raises(ConflictError):
            await invite(services, team, owner)

    async def test_email_failure_keeps_invitation(
        self, db_session, services, team, owner, notifier
    ):
        notifier.fail = True

        invitation_id, token = await invite(services, team, owner)

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation is not None
        assert invitation.status == "pending"
        assert token

    async def test_unexpected_notifier_error_keeps_invitation(
        self, db_session, services, team, owner, notifier, monkeypatch
    ):
        async def broken(email):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(notifier, "send_invitation", broken)

        invitation_id, _ = await invite(services, team, owner)

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation is not None
        assert invitation.status == "pending"


class TestAcceptInvitation:
    async def test_alice_joins_as_practitioner(self, db_session, services, team, owner, alice):
        invitation_id, token = await invite(services, team, owner, role="practitioner")

        member = await services.invitations.accept_invitation(token, alice)

        assert member.team_role == "practitioner"
        assert member.is_active is True
        assert member.user_id == alice.user_id
        assert member.invitation_accepted_at is not None
        assert member.display_name == "Alice Nguyen"
        assert member.permission_set.invite_members is False

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.status == InvitationStatus.ACCEPTED.value
        assert invitation.accepted_by == alice.user_id
        assert invitation.accepted_at is not None

    async def test_acceptance_takes_a_seat_and_is_audited(
        self, db_session, services, team, owner, alice
    ):
        _, token = await invite(services, team, owner)

        member = await services.invitations.accept_invitation(token, alice)

        assert await team_size(db_session, team.id) == 2
        joined = await audit_rows(db_session, target_member_id=member.id)
        assert len(joined) == 1
        assert joined[0].performed_by == alice.user_id
        assert joined[0].compliance_impact is True

    async def test_unknown_token_rejected_and_audited(self, db_session, services, team, alice):
        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation("not-a-real-token", alice)

        rejected = await audit_rows(db_session, performed_by=alice.user_id, status="failure")
        assert len(rejected) == 1
        assert rejected[0].team_id is None

    async def test_second_accept_is_rejected(self, db_session, services, team, owner, alice):
        _, token = await invite(services, team, owner)
        await services.invitations.accept_invitation(token, alice)

        with pytest.raises((InvalidOrExpiredInvitationError, ConflictError)):
            await services.invitations.accept_invitation(token, alice)

        members = await db_session.scalar(
            select(func.count()).select_from(TeamMember).where(TeamMember.user_id == alice.user_id)
        )
        assert members == 1

    async def test_expired_invitation_rejected(self, db_session, services, team, owner, alice):
        invitation_id, token = await invite(services, team, owner)
        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        invitation.expires_at = utc_now() - timedelta(seconds=1)
        await db_session.commit()

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, alice)

        assert await team_size(db_session, team.id) == 1

    async def test_expiry_instant_is_exclusive(
        self, db_session, services, team, owner, alice, monkeypatch
    ):
        invitation_id, token = await invite(services, team, owner)
        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        expires_at = invitation.expires_at
        await db_session.commit()

        monkeypatch.setattr(
            "src.careteam.services.invitation_service.utc_now", lambda: expires_at
        )

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, alice)

    async def test_token_bound_to_invited_email(self, db_session, services, team, owner, mallory):
        invitation_id, token = await invite(services, team, owner)

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, mallory)

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.status == "pending"

    async def test_email_match_ignores_case(self, services, team, owner):
        shouting = Principal(user_id=uuid4(), email="ALICE@EXAMPLE.COM")
        _, token = await invite(services, team, owner)

        member = await services.invitations.accept_invitation(token, shouting)

        assert member.is_active

    async def test_cancelled_invitation_rejected(self, services, team, owner, alice):
        invitation_id, token = await invite(services, team, owner)
        await services.invitations.cancel_invitation(team.id, invitation_id, owner)

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, alice)

    async def test_full_team_rolls_back_everything(
        self, db_session, services, team, owner, alice
    ):
        invitation_id, token = await invite(services, team, owner)
        stored = await fetch(db_session, Team, team.id)
        stored.current_team_size = stored.max_team_size
        await db_session.commit()

        with pytest.raises(ConflictError):
            await services.invitations.accept_invitation(token, alice)

        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.status == "pending"
        members = await db_session.scalar(
            select(func.count()).select_from(TeamMember).where(TeamMember.user_id == alice.user_id)
        )
        assert members == 0
        assert await team_size(db_session, team.id) == team.max_team_size

    async def test_deactivated_team_rejects_acceptance(
        self, db_session, services, team, owner, alice
    ):
        _, token = await invite(services, team, owner)
        stored = await fetch(db_session, Team, team.id)
        stored.is_active = False
        await db_session.commit()

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, alice)


class TestDeclineInvitation:
    async def test_decline_records_reason(self, db_session, services, team, owner, alice):
        invitation_id, token = await invite(services, team, owner)

        declined = await services.invitations.decline_invitation(token, alice, "Moving interstate")

        assert declined.status == InvitationStatus.DECLINED.value
        invitation = await fetch(db_session, TeamInvitation, invitation_id)
        assert invitation.declined_reason == "Moving interstate"
        assert invitation.declined_at is not None

    async def test_declined_invitation_cannot_be_accepted(self, services, team, owner, alice):
        _, token = await invite(services, team, owner)
        await services.invitations.decline_invitation(token, alice)

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(token, alice)

    async def test_other_principal_cannot_decline(self, services, team, owner, mallory):
        _, token = await invite(services, team, owner)

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.decline_invitation(token, mallory)


class TestCancelInvitation:
    async def test_cancel_pending(self, db_session, services, team, owner):
        invitation_id, _ = await invite(services, team, owner)

        cancelled = await services.invitations.cancel_invitation(team.id, invitation_id, owner)

        assert cancelled.status == InvitationStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None

    async def test_cancel_accepted_is_invalid_state(self, services, team, owner, alice):
        invitation_id, token = await invite(services, team, owner)
        await services.invitations.accept_invitation(token, alice)

        with pytest.raises(InvalidStateError):
            await services.invitations.cancel_invitation(team.id, invitation_id, owner)

    async def test_cancel_unknown_invitation(self, services, team, owner):
        with pytest.raises(NotFoundError):
            await services.invitations.cancel_invitation(team.id, uuid4(), owner)

    async def test_cancel_requires_permission(self, services, team, owner, mallory):
        invitation_id, _ = await invite(services, team, owner)

        with pytest.raises(PermissionDeniedError):
            await services.invitations.cancel_invitation(team.id, invitation_id, mallory)


class TestResendInvitation:
    async def test_resend_rotates_token(
        self, db_session, services, team, owner, alice, notifier
    ):
        invitation_id, old_token = await invite(services, team, owner)

        invitation, new_token = await services.invitations.resend_invitation(
            team.id, invitation_id, owner
        )

        assert new_token != old_token
        assert invitation.reminder_sent_count == 1
        assert invitation.last_reminder_sent_at is not None
        assert notifier.last_token == new_token
        assert len(notifier.sent) == 2

        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.accept_invitation(old_token, alice)
        member = await services.invitations.accept_invitation(new_token, alice)
        assert member.is_active

    async def test_resend_of_cancelled_is_invalid_state(self, services, team, owner):
        invitation_id, _ = await invite(services, team, owner)
        await services.invitations.cancel_invitation(team.id, invitation_id, owner)

        with pytest.raises(InvalidStateError):
            await services.invitations.resend_invitation(team.id, invitation_id, owner)


class TestInvitationQueries:
    async def test_invitation_info_for_join_page(self, services, team, owner):
        _, token = await invite(services, team, owner, department="Cardiology")

        info = await services.invitations.get_invitation_info(token)

        assert info["team_name"] == "Harbour Street Care Team"
        assert info["practice_name"] == "Harbour Street Clinic"
        assert info["invited_name"] == "Alice Nguyen"
        assert info["team_role"] == "practitioner"
        assert info["department"] == "Cardiology"
        assert "token" not in info

    async def test_invitation_info_unknown_token(self, services):
        with pytest.raises(InvalidOrExpiredInvitationError):
            await services.invitations.get_invitation_info("nope")

    async def test_list_pending_excludes_terminal_and_lapsed(
        self, db_session, services, team, owner
    ):
        live_id, _ = await invite(services, team, owner, email="live@example.com")
        cancelled_id, _ = await invite(services, team, owner, email="gone@example.com")
        lapsed_id, _ = await invite(services, team, owner, email="late@example.com")
        await services.invitations.cancel_invitation(team.id, cancelled_id, owner)
        lapsed = await fetch(db_session, TeamInvitation, lapsed_id)
        lapsed.expires_at = utc_now() - timedelta(minutes=1)
        await db_session.commit()

        pending = await services.invitations.list_pending_invitations(team.id, owner)

        assert [inv.id for inv in pending] == [live_id]

    async def test_expire_stale_invitations(self, db_session, services, team, owner):
        lapsed_id, _ = await invite(services, team, owner, email="late@example.com")
        live_id, _ = await invite(services, team, owner, email="live@example.com")
        lapsed = await fetch(db_session, TeamInvitation, lapsed_id)
        lapsed.expires_at = utc_now() - timedelta(minutes=1)
        await db_session.commit()

        assert await services.invitations.expire_stale_invitations() == 1
        assert await services.invitations.expire_stale_invitations() == 0

        assert (await fetch(db_session, TeamInvitation, lapsed_id)).status == "expired"
        assert (await fetch(db_session, TeamInvitation, live_id)).status == "pending"
