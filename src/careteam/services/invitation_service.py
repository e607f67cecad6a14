"""Team invitation service - create, send, accept, decline, cancel, resend."""

from datetime import timedelta
from typing import Any
from uuid import UUID

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.config import Settings, get_settings
from src.careteam.core.exceptions import (
    CareTeamError,
    ConfigurationError,
    ConflictError,
    InvalidOrExpiredInvitationError,
    InvalidStateError,
    NotFoundError,
    NotificationError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from src.careteam.core.logging import get_logger
from src.careteam.core.notifications import InvitationEmail, InvitationNotifier, build_join_url
from src.careteam.core.security import Principal, generate_invitation_token, hash_token
from src.careteam.models import (
    ROLE_ACCESS_LEVELS,
    AuditActionType,
    InvitationStatus,
    Team,
    TeamInvitation,
    TeamMember,
    TeamRole,
    default_permissions,
    dump_settings,
)
from src.careteam.models.base import utc_now
from src.careteam.repositories import (
    TeamInvitationRepository,
    TeamMemberRepository,
    TeamRepository,
)
from src.careteam.services.access_policy import AccessPolicy, TeamCapability
from src.careteam.services.audit_service import AuditService

logger = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)

MAX_NAME_LENGTH = 100
MAX_MESSAGE_LENGTH = 1000


def normalize_email(email: str) -> str:
    """Validate and lower-case an email address.

    Raises:
        ValidationError: If the address is malformed.
    """
    try:
        return str(_email_adapter.validate_python(email.strip())).lower()
    except PydanticValidationError as e:
        raise ValidationError("A valid email address is required") from e


def parse_invitable_role(role: TeamRole | str) -> TeamRole:
    try:
        parsed = TeamRole(role)
    except ValueError as e:
        raise ValidationError(f"Unknown team role: {role}") from e
    if parsed == TeamRole.OWNER:
        raise ValidationError("The owner role cannot be granted by invitation")
    return parsed


class InvitationService:
    """Invitation lifecycle for one request.

    Collaborators are injected; nothing here reaches for module-level
    clients, so tests can pass fakes for the notifier and repositories.
    """

    def __init__(
        self,
        invitation_repo: TeamInvitationRepository,
        member_repo: TeamMemberRepository,
        team_repo: TeamRepository,
        audit_service: AuditService,
        access_policy: AccessPolicy,
        notifier: InvitationNotifier,
        session: AsyncSession,
        settings: Settings | None = None,
    ):
        self.invitation_repo = invitation_repo
        self.member_repo = member_repo
        self.team_repo = team_repo
        self.audit = audit_service
        self.access_policy = access_policy
        self.notifier = notifier
        self.session = session
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Team-side operations (owner or delegated manager)
    # ------------------------------------------------------------------

    async def create_invitation(
        self,
        team_id: UUID,
        inviter: Principal,
        email: str,
        invited_name: str,
        role: TeamRole | str,
        department: str | None = None,
        personal_message: str | None = None,
        require_professional_verification: bool = False,
        require_background_check: bool = False,
    ) -> tuple[TeamInvitation, str]:
        """Create an invitation and send it.

        Returns (invitation, plaintext_token). The token is not stored and
        cannot be recovered later.

        A failed email does not undo the invitation; the owner can resend.
        """
        email = normalize_email(email)
        invited_name = (invited_name or "").strip()
        if not invited_name:
            raise ValidationError("Invitee name is required")
        if len(invited_name) > MAX_NAME_LENGTH:
            raise ValidationError(f"Invitee name must be at most {MAX_NAME_LENGTH} characters")
        if personal_message and len(personal_message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Personal message must be at most {MAX_MESSAGE_LENGTH} characters"
            )
        team_role = parse_invitable_role(role)

        team = await self.team_repo.get_by_id(team_id)
        if team is None or not team.is_active:
            raise ConfigurationError("Team not found or inactive", status_code=404)

        inviter_membership = await self._authorize(
            team, inviter, TeamCapability.INVITE_MEMBERS, "Invite team member"
        )

        try:
            if team.current_team_size >= team.max_team_size:
                raise ConflictError("Team has reached its maximum size")

            if await self.member_repo.get_active_by_email(team.id, email):
                raise ConflictError("This person is already an active member of the team")

            # Lapsed invitations no longer block a fresh one
            await self.invitation_repo.expire_stale(team_id=team.id, email=email)
            if await self.invitation_repo.get_pending_for_email(team.id, email):
                raise ConflictError("A pending invitation already exists for this email")

            token = generate_invitation_token()
            now = utc_now()
            invitation = TeamInvitation(
                team_id=team.id,
                invited_by=inviter.user_id,
                invited_email=email,
                invited_name=invited_name,
                team_role=team_role.value,
                department=department,
                personal_message=personal_message,
                token_hash=hash_token(token),
                status=InvitationStatus.PENDING.value,
                expires_at=now + timedelta(days=self.settings.invite_expire_days),
                ahpra_verification_required=require_professional_verification,
                background_check_required=require_background_check,
                created_at=now,
                updated_at=now,
            )
            self.invitation_repo.add(invitation)
            await self.session.flush()

            self.audit.stage(
                action=f"Invited {email} as {team_role.value}",
                action_type=AuditActionType.INVITATION,
                performed_by=inviter.user_id,
                team_id=team.id,
                details={
                    "invitation_id": str(invitation.id),
                    "invited_email": email,
                    "team_role": team_role.value,
                    "ahpra_verification_required": require_professional_verification,
                    "background_check_required": require_background_check,
                },
                compliance_impact=True,
            )
            await self.session.commit()

        except CareTeamError:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            # Lost a race against another create for the same email
            await self.session.rollback()
            raise ConflictError("A pending invitation already exists for this email") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to create invitation", team_id=str(team_id), error=str(e))
            raise StorageError() from e

        logger.info(
            "Invitation created",
            team_id=str(team.id),
            invitation_id=str(invitation.id),
            team_role=team_role.value,
            invited_by=str(inviter.user_id),
        )

        await self._send(invitation, token, team, _display_name(inviter, inviter_membership))
        return invitation, token

    async def cancel_invitation(
        self, team_id: UUID, invitation_id: UUID, actor: Principal
    ) -> TeamInvitation:
        """Cancel a pending invitation."""
        team = await self._load_team(team_id)
        await self._authorize(team, actor, TeamCapability.INVITE_MEMBERS, "Cancel invitation")

        try:
            invitation = await self.invitation_repo.get_in_team(team.id, invitation_id)
            if invitation is None:
                raise NotFoundError("Invitation not found")
            if invitation.status != InvitationStatus.PENDING.value:
                raise InvalidStateError(
                    f"Cannot cancel invitation with status: {invitation.status}"
                )

            now = utc_now()
            if not await self.invitation_repo.mark_cancelled(invitation.id, now):
                raise InvalidStateError("Invitation is no longer pending")

            self.audit.stage(
                action=f"Cancelled invitation for {invitation.invited_email}",
                action_type=AuditActionType.INVITATION,
                performed_by=actor.user_id,
                team_id=team.id,
                details={"invitation_id": str(invitation.id)},
            )
            await self.session.commit()
            await self.session.refresh(invitation)

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to cancel invitation", invitation_id=str(invitation_id), error=str(e)
            )
            raise StorageError() from e

        logger.info("Invitation cancelled", invitation_id=str(invitation_id))
        return invitation

    async def resend_invitation(
        self, team_id: UUID, invitation_id: UUID, actor: Principal
    ) -> tuple[TeamInvitation, str]:
        """Send a reminder with a fresh token and a renewed expiry.

        The old link stops working: only the new token's hash is kept.
        """
        team = await self._load_team(team_id)
        actor_membership = await self._authorize(
            team, actor, TeamCapability.INVITE_MEMBERS, "Resend invitation"
        )

        try:
            invitation = await self.invitation_repo.get_in_team(team.id, invitation_id)
            if invitation is None:
                raise NotFoundError("Invitation not found")

            now = utc_now()
            if not invitation.is_live(now):
                raise InvalidStateError("Only pending, unexpired invitations can be resent")

            token = generate_invitation_token()
            expires_at = now + timedelta(days=self.settings.invite_expire_days)
            if not await self.invitation_repo.rotate_token(
                invitation.id, hash_token(token), expires_at, now
            ):
                raise InvalidStateError("Invitation is no longer pending")

            self.audit.stage(
                action=f"Resent invitation to {invitation.invited_email}",
                action_type=AuditActionType.INVITATION,
                performed_by=actor.user_id,
                team_id=team.id,
                details={
                    "invitation_id": str(invitation.id),
                    "reminder_sent_count": invitation.reminder_sent_count + 1,
                },
            )
            await self.session.commit()
            await self.session.refresh(invitation)

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to resend invitation", invitation_id=str(invitation_id), error=str(e)
            )
            raise StorageError() from e

        logger.info(
            "Invitation resent",
            invitation_id=str(invitation.id),
            reminder_sent_count=invitation.reminder_sent_count,
        )
        await self._send(invitation, token, team, _display_name(actor, actor_membership))
        return invitation, token

    async def list_pending_invitations(
        self, team_id: UUID, actor: Principal
    ) -> list[TeamInvitation]:
        """Live pending invitations for the team, newest first."""
        team = await self._load_team(team_id)
        await self.access_policy.require(team, actor, TeamCapability.INVITE_MEMBERS)
        return await self.invitation_repo.list_live_pending(team.id)

    # ------------------------------------------------------------------
    # Invitee-side operations (token holder)
    # ------------------------------------------------------------------

    async def get_invitation_info(self, token: str) -> dict[str, Any]:
        """Public preview shown on the join page before accepting."""
        invitation = await self.invitation_repo.get_valid_by_hash(hash_token(token))
        if invitation is None:
            raise InvalidOrExpiredInvitationError()

        team = await self.team_repo.get_by_id(invitation.team_id)
        if team is None or not team.is_active:
            raise InvalidOrExpiredInvitationError()

        return {
            "team_name": team.team_name,
            "practice_name": team.practice_name,
            "invited_name": invitation.invited_name,
            "team_role": invitation.team_role,
            "department": invitation.department,
            "personal_message": invitation.personal_message,
            "expires_at": invitation.expires_at,
            "ahpra_verification_required": invitation.ahpra_verification_required,
            "background_check_required": invitation.background_check_required,
        }

    async def accept_invitation(self, token: str, principal: Principal) -> TeamMember:
        """Accept an invitation and join the team.

        One transaction: claim the invitation (conditional on still pending
        and unexpired), insert the member, take a seat on the team counter,
        and record the audit entry. Any failure rolls back all of it.

        Raises:
            InvalidOrExpiredInvitationError: Unknown token, not pending,
                expired, or issued to a different email.
            ConflictError: Already a member, or the team is full.
        """
        token_hash = hash_token(token)
        now = utc_now()

        try:
            invitation = await self.invitation_repo.get_valid_by_hash(token_hash, now)
            if invitation is None:
                raise InvalidOrExpiredInvitationError()

            if (
                self.settings.invitation_email_binding
                and invitation.invited_email != principal.normalized_email
            ):
                raise InvalidOrExpiredInvitationError()

            team = await self.team_repo.get_by_id(invitation.team_id)
            if team is None or not team.is_active:
                raise InvalidOrExpiredInvitationError()

            if await self.member_repo.get_active_membership(team.id, principal.user_id):
                raise ConflictError("You are already a member of this team")

            if not await self.invitation_repo.claim_for_acceptance(
                invitation.id, principal.user_id, now
            ):
                raise InvalidOrExpiredInvitationError()

            role = TeamRole(invitation.team_role)
            member = TeamMember(
                team_id=team.id,
                user_id=principal.user_id,
                invited_email=invitation.invited_email,
                invited_by=invitation.invited_by,
                team_role=role.value,
                display_name=invitation.invited_name,
                department=invitation.department,
                permissions=dump_settings(default_permissions(role)),
                access_level=ROLE_ACCESS_LEVELS[role],
                start_date=now.date(),
                is_active=True,
                invitation_accepted_at=now,
                created_at=now,
                updated_at=now,
            )
            self.member_repo.add(member)
            await self.session.flush()

            if not await self.team_repo.reserve_seat(team.id):
                raise ConflictError("Team has reached its maximum size")

            self.audit.stage(
                action=f"{invitation.invited_email} joined the team as {role.value}",
                action_type=AuditActionType.INVITATION,
                performed_by=principal.user_id,
                team_id=team.id,
                target_member_id=member.id,
                details={"invitation_id": str(invitation.id), "team_role": role.value},
                compliance_impact=True,
            )
            await self.session.commit()

        except CareTeamError as e:
            await self.session.rollback()
            await self._audit_rejected_accept(principal, token_hash, e.message)
            raise
        except IntegrityError as e:
            await self.session.rollback()
            await self._audit_rejected_accept(principal, token_hash, "duplicate membership")
            raise ConflictError("You are already a member of this team") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to accept invitation", error=str(e))
            raise StorageError() from e

        logger.info(
            "Invitation accepted",
            team_id=str(member.team_id),
            member_id=str(member.id),
            team_role=member.team_role,
        )
        return member

    async def decline_invitation(
        self, token: str, principal: Principal, reason: str | None = None
    ) -> TeamInvitation:
        """Decline an invitation. Same undifferentiated failure as accept."""
        token_hash = hash_token(token)
        now = utc_now()

        try:
            invitation = await self.invitation_repo.get_valid_by_hash(token_hash, now)
            if invitation is None or (
                self.settings.invitation_email_binding
                and invitation.invited_email != principal.normalized_email
            ):
                raise InvalidOrExpiredInvitationError()

            if not await self.invitation_repo.mark_declined(invitation.id, reason, now):
                raise InvalidOrExpiredInvitationError()

            self.audit.stage(
                action=f"{invitation.invited_email} declined the invitation",
                action_type=AuditActionType.INVITATION,
                performed_by=principal.user_id,
                team_id=invitation.team_id,
                details={"invitation_id": str(invitation.id), "reason": reason},
            )
            await self.session.commit()
            await self.session.refresh(invitation)

        except CareTeamError as e:
            await self.session.rollback()
            await self._audit_rejected_accept(principal, token_hash, e.message, declined=True)
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to decline invitation", error=str(e))
            raise StorageError() from e

        logger.info("Invitation declined", invitation_id=str(invitation.id))
        return invitation

    # ------------------------------------------------------------------
    # Background
    # ------------------------------------------------------------------

    async def expire_stale_invitations(self) -> int:
        """Mark lapsed pending invitations EXPIRED. Returns the count.

        Accept rejects expired rows on its own; this only keeps status
        columns honest for listings and reports.
        """
        try:
            count = await self.invitation_repo.expire_stale()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError() from e

        if count:
            logger.info("Expired stale invitations", count=count)
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_team(self, team_id: UUID) -> Team:
        team = await self.team_repo.get_by_id(team_id)
        if team is None or not team.is_active:
            raise NotFoundError("Team not found")
        return team

    async def _authorize(
        self,
        team: Team,
        actor: Principal,
        capability: TeamCapability,
        action: str,
    ) -> TeamMember | None:
        """Enforce a capability, auditing refusals. Returns the caller's membership."""
        try:
            return await self.access_policy.require(team, actor, capability)
        except PermissionDeniedError as e:
            await self.audit.log_failure(
                action=f"{action} denied",
                action_type=AuditActionType.INVITATION,
                performed_by=actor.user_id,
                team_id=team.id,
                error_message=e.message,
                details={"capability": capability.value},
            )
            raise

    async def _audit_rejected_accept(
        self,
        principal: Principal,
        token_hash: str,
        reason: str,
        declined: bool = False,
    ) -> None:
        # No team_id: a failed token lookup must not reveal which team it named
        await self.audit.log_failure(
            action="Invitation decline rejected" if declined else "Invitation acceptance rejected",
            action_type=AuditActionType.INVITATION,
            performed_by=principal.user_id,
            error_message=reason,
            details={"token_ref": token_hash[:12]},
            compliance_impact=True,
        )

    async def _send(
        self,
        invitation: TeamInvitation,
        token: str,
        team: Team,
        inviter_name: str,
    ) -> None:
        """Best-effort delivery; failures are logged, never raised."""
        email = InvitationEmail(
            to=invitation.invited_email,
            invited_name=invitation.invited_name,
            team_name=team.team_name,
            practice_name=team.practice_name,
            inviter_name=inviter_name,
            role=invitation.team_role,
            join_url=build_join_url(token, self.settings),
            expires_at=invitation.expires_at,
            personal_message=invitation.personal_message,
        )
        try:
            await self.notifier.send_invitation(email)
        except NotificationError as e:
            logger.warning(
                "Invitation email failed; invitation kept",
                invitation_id=str(invitation.id),
                error=e.message,
            )
        except Exception:
            logger.exception(
                "Notifier raised unexpectedly; invitation kept",
                invitation_id=str(invitation.id),
            )


def _display_name(principal: Principal, membership: TeamMember | None) -> str:
    if membership is not None and membership.display_name:
        return membership.display_name
    return principal.email
