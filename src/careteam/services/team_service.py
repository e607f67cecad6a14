"""Team service - provisioning, membership management and the audit trail."""

from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.config import Settings, get_settings
from src.careteam.core.exceptions import (
    CareTeamError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from src.careteam.core.logging import get_logger
from src.careteam.core.security import Principal
from src.careteam.models import (
    ROLE_ACCESS_LEVELS,
    AuditActionType,
    AuditLogEntry,
    MemberPermissions,
    Team,
    TeamMember,
    TeamRole,
    default_permissions,
    dump_settings,
)
from src.careteam.models.base import utc_now
from src.careteam.repositories import TeamMemberRepository, TeamRepository
from src.careteam.services.access_policy import AccessPolicy, TeamCapability
from src.careteam.services.audit_service import AuditService

logger = get_logger(__name__)

# Fields a manager may change on a membership
UPDATABLE_MEMBER_FIELDS = frozenset(
    {"team_role", "permissions", "access_level", "department", "is_active", "notes"}
)
CLEARABLE_MEMBER_FIELDS = frozenset({"department", "notes"})


class TeamService:
    def __init__(
        self,
        team_repo: TeamRepository,
        member_repo: TeamMemberRepository,
        audit_service: AuditService,
        access_policy: AccessPolicy,
        session: AsyncSession,
        settings: Settings | None = None,
    ):
        self.team_repo = team_repo
        self.member_repo = member_repo
        self.audit = audit_service
        self.access_policy = access_policy
        self.session = session
        self.settings = settings or get_settings()

    async def provision_team(
        self,
        owner: Principal,
        team_name: str,
        practice_name: str | None = None,
        team_description: str | None = None,
        ahpra_practice_number: str | None = None,
        max_team_size: int | None = None,
    ) -> Team:
        """Create a team with the caller as its owner and first member.

        Raises:
            ConflictError: If the caller already owns an active team.
        """
        team_name = (team_name or "").strip()
        if not team_name:
            raise ValidationError("Team name is required")
        size_limit = max_team_size or self.settings.default_max_team_size
        if size_limit < 1:
            raise ValidationError("Maximum team size must be at least 1")

        try:
            if await self.team_repo.get_active_by_owner(owner.user_id):
                raise ConflictError("You already own an active team")

            now = utc_now()
            team = Team(
                owner_id=owner.user_id,
                team_name=team_name,
                practice_name=practice_name,
                team_description=team_description,
                ahpra_practice_number=ahpra_practice_number,
                max_team_size=size_limit,
                current_team_size=1,
                created_at=now,
                updated_at=now,
            )
            self.team_repo.add(team)
            await self.session.flush()

            owner_member = TeamMember(
                team_id=team.id,
                user_id=owner.user_id,
                invited_email=owner.normalized_email,
                team_role=TeamRole.OWNER.value,
                permissions=dump_settings(default_permissions(TeamRole.OWNER)),
                access_level=ROLE_ACCESS_LEVELS[TeamRole.OWNER],
                start_date=now.date(),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self.member_repo.add(owner_member)

            self.audit.stage(
                action=f"Team '{team_name}' created",
                action_type=AuditActionType.MEMBER_UPDATE,
                performed_by=owner.user_id,
                team_id=team.id,
                details={"max_team_size": size_limit},
                compliance_impact=True,
            )
            await self.session.commit()

        except CareTeamError:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Team could not be created") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to provision team", error=str(e))
            raise StorageError() from e

        logger.info("Team provisioned", team_id=str(team.id))
        return team

    async def get_team_for_principal(self, principal: Principal) -> Team:
        """The team the caller owns, else the first one they belong to."""
        team = await self.team_repo.get_active_by_owner(principal.user_id)
        if team is None:
            team = await self.team_repo.get_active_for_member(principal.user_id)
        if team is None:
            raise NotFoundError("No active team found")
        return team

    async def list_members(self, team_id: UUID, actor: Principal) -> list[TeamMember]:
        team = await self._load_team(team_id)
        await self.access_policy.require(team, actor, TeamCapability.VIEW_TEAM)
        return await self.member_repo.list_active(team.id)

    async def update_member(
        self,
        team_id: UUID,
        member_id: UUID,
        actor: Principal,
        updates: dict[str, Any],
    ) -> TeamMember:
        """Apply a partial update to a membership.

        Args:
            updates: Subset of UPDATABLE_MEMBER_FIELDS. Unknown keys are
                rejected rather than ignored.

        Returns:
            The refreshed member.
        """
        unknown = set(updates) - UPDATABLE_MEMBER_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        nulled = sorted(
            key for key, value in updates.items()
            if value is None and key not in CLEARABLE_MEMBER_FIELDS
        )
        if nulled:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulled)}")

        team = await self._load_team(team_id)
        actor_membership = await self._authorize(
            team, actor, TeamCapability.MANAGE_MEMBERS, "Update member"
        )
        grant_ceiling = None if team.owner_id == actor.user_id else actor_membership

        try:
            member = await self.member_repo.get_in_team(team.id, member_id)
            if member is None:
                raise NotFoundError("Team member not found")

            is_owner_row = member.user_id == team.owner_id
            changes: dict[str, dict[str, Any]] = {}

            if "team_role" in updates and updates["team_role"] != member.team_role:
                new_role = _parse_role(updates["team_role"])
                if is_owner_row or new_role == TeamRole.OWNER:
                    raise InvalidStateError("Team ownership cannot be changed here")
                changes["team_role"] = {"old": member.team_role, "new": new_role.value}
                member.team_role = new_role.value

            if "permissions" in updates:
                merged = MemberPermissions.model_validate(
                    {**(member.permissions or {}), **(updates["permissions"] or {})}
                )
                if grant_ceiling is not None:
                    held = grant_ceiling.permission_set
                    granted = {
                        flag for flag, on in merged.model_dump().items()
                        if on and not (member.permissions or {}).get(flag)
                    }
                    if any(not getattr(held, flag) for flag in granted):
                        raise PermissionDeniedError("Cannot grant permissions you do not hold")
                new_permissions = dump_settings(merged)
                if new_permissions != member.permissions:
                    changes["permissions"] = {"old": member.permissions, "new": new_permissions}
                    member.permissions = new_permissions

            if "access_level" in updates and updates["access_level"] != member.access_level:
                level = int(updates["access_level"])
                if not 0 <= level <= 100:
                    raise ValidationError("Access level must be between 0 and 100")
                if is_owner_row:
                    raise InvalidStateError("The owner's access level cannot be changed")
                if grant_ceiling is not None and level > grant_ceiling.access_level:
                    raise PermissionDeniedError("Cannot grant an access level above your own")
                changes["access_level"] = {"old": member.access_level, "new": level}
                member.access_level = level

            for field in ("department", "notes"):
                if field in updates and updates[field] != getattr(member, field):
                    changes[field] = {"old": getattr(member, field), "new": updates[field]}
                    setattr(member, field, updates[field])

            if "is_active" in updates and bool(updates["is_active"]) != member.is_active:
                activate = bool(updates["is_active"])
                if is_owner_row:
                    raise InvalidStateError("The team owner cannot be deactivated")
                if not await self.member_repo.set_active(member.id, activate):
                    raise InvalidStateError("Member status changed concurrently")
                if activate:
                    if not await self.team_repo.reserve_seat(team.id):
                        raise ConflictError("Team has reached its maximum size")
                else:
                    await self.team_repo.adjust_size(team.id, -1)
                changes["is_active"] = {"old": not activate, "new": activate}

            if not changes:
                return member

            member.updated_at = utc_now()
            self.audit.stage(
                action=f"Updated member {member.invited_email}",
                action_type=AuditActionType.MEMBER_UPDATE,
                performed_by=actor.user_id,
                team_id=team.id,
                target_member_id=member.id,
                details={"changes": changes},
                compliance_impact="permissions" in changes or "team_role" in changes,
            )
            await self.session.commit()
            await self.session.refresh(member)

        except CareTeamError:
            await self.session.rollback()
            raise
        except IntegrityError as e:
            # Reactivating while another active row exists for the same user
            await self.session.rollback()
            raise ConflictError("This person is already an active member of the team") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to update member", member_id=str(member_id), error=str(e))
            raise StorageError() from e

        logger.info("Team member updated", member_id=str(member_id), fields=sorted(changes))
        return member

    async def remove_member(
        self,
        team_id: UUID,
        member_id: UUID,
        actor: Principal,
        reason: str | None = None,
    ) -> TeamMember:
        """Soft-delete a member and release their seat."""
        team = await self._load_team(team_id)
        await self._authorize(team, actor, TeamCapability.MANAGE_MEMBERS, "Remove member")

        try:
            member = await self.member_repo.get_in_team(team.id, member_id)
            if member is None:
                raise NotFoundError("Team member not found")
            if member.user_id == team.owner_id:
                raise InvalidStateError("The team owner cannot be removed")

            notes = f"Removed: {reason}" if reason else "Removed from team"
            if not await self.member_repo.deactivate(member.id, notes, utc_now().date()):
                raise InvalidStateError("Team member is already inactive")
            await self.team_repo.adjust_size(team.id, -1)

            self.audit.stage(
                action=f"Removed member {member.invited_email}",
                action_type=AuditActionType.DEACTIVATION,
                performed_by=actor.user_id,
                team_id=team.id,
                target_member_id=member.id,
                details={"reason": reason, "team_role": member.team_role},
                compliance_impact=True,
            )
            await self.session.commit()
            await self.session.refresh(member)

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to remove member", member_id=str(member_id), error=str(e))
            raise StorageError() from e

        logger.info("Team member removed", team_id=str(team.id), member_id=str(member.id))
        return member

    async def list_audit_log(
        self,
        team_id: UUID,
        actor: Principal,
        cursor: str | None = None,
        limit: int = 50,
        action_type: str | None = None,
    ) -> tuple[list[AuditLogEntry], str | None, bool]:
        team = await self._load_team(team_id)
        await self.access_policy.require(team, actor, TeamCapability.VIEW_AUDIT_LOG)
        return await self.audit.list_team_logs(
            team_id=team.id, cursor=cursor, limit=limit, action_type=action_type
        )

    async def record_login(self, team_id: UUID, principal: Principal) -> None:
        """Stamp last_login_at on the caller's membership, if any."""
        membership = await self.member_repo.get_active_membership(team_id, principal.user_id)
        if membership is None:
            return
        try:
            await self.member_repo.touch_last_login(membership.id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StorageError() from e

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
        try:
            return await self.access_policy.require(team, actor, capability)
        except PermissionDeniedError as e:
            await self.audit.log_failure(
                action=f"{action} denied",
                action_type=AuditActionType.MEMBER_UPDATE,
                performed_by=actor.user_id,
                team_id=team.id,
                error_message=e.message,
                details={"capability": capability.value},
            )
            raise


def _parse_role(role: Any) -> TeamRole:
    try:
        return TeamRole(role)
    except ValueError as e:
        raise ValidationError(f"Unknown team role: {role}") from e
