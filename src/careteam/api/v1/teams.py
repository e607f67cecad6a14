"""Team and membership endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.careteam.api.dependencies import (
    CurrentPrincipal,
    InvitationServiceDep,
    TeamServiceDep,
)
from src.careteam.core.logging import bind_team_context
from src.careteam.schemas import (
    AuditLogListResponse,
    AuditLogRead,
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationListResponse,
    InvitationRead,
    TeamCreate,
    TeamMemberListResponse,
    TeamMemberRead,
    TeamMemberUpdate,
    TeamRead,
)

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post(
    "",
    response_model=TeamRead,
    status_code=status.HTTP_201_CREATED,
    summary="Provision team",
    description="Create a care team owned by the caller.",
)
async def create_team(
    team_data: TeamCreate,
    principal: CurrentPrincipal,
    team_service: TeamServiceDep,
) -> TeamRead:
    team = await team_service.provision_team(
        owner=principal,
        team_name=team_data.team_name,
        practice_name=team_data.practice_name,
        team_description=team_data.team_description,
        ahpra_practice_number=team_data.ahpra_practice_number,
        max_team_size=team_data.max_team_size,
    )
    return TeamRead.model_validate(team)


@router.get("/me", response_model=TeamRead, summary="Get my team")
async def get_my_team(principal: CurrentPrincipal, team_service: TeamServiceDep) -> TeamRead:
    """The team the caller owns, or else the first one they belong to."""
    team = await team_service.get_team_for_principal(principal)
    await team_service.record_login(team.id, principal)
    return TeamRead.model_validate(team)


@router.get("/{team_id}/members", response_model=TeamMemberListResponse, summary="List members")
async def list_members(
    team_id: UUID,
    principal: CurrentPrincipal,
    team_service: TeamServiceDep,
) -> TeamMemberListResponse:
    bind_team_context(team_id)
    members = await team_service.list_members(team_id, principal)
    return TeamMemberListResponse(
        members=[TeamMemberRead.model_validate(m) for m in members],
        total=len(members),
    )


@router.patch(
    "/{team_id}/members/{member_id}",
    response_model=TeamMemberRead,
    summary="Update member",
    description="Change role, permissions, access level, department, notes or active flag.",
)
async def update_member(
    team_id: UUID,
    member_id: UUID,
    update_data: TeamMemberUpdate,
    principal: CurrentPrincipal,
    team_service: TeamServiceDep,
) -> TeamMemberRead:
    bind_team_context(team_id)
    member = await team_service.update_member(
        team_id, member_id, principal, update_data.to_updates()
    )
    return TeamMemberRead.model_validate(member)


@router.delete(
    "/{team_id}/members/{member_id}",
    response_model=TeamMemberRead,
    summary="Remove member",
    description="Soft-delete a member. The audit trail keeps the membership history.",
)
async def remove_member(
    team_id: UUID,
    member_id: UUID,
    principal: CurrentPrincipal,
    team_service: TeamServiceDep,
    reason: Annotated[str | None, Query(max_length=500)] = None,
) -> TeamMemberRead:
    bind_team_context(team_id)
    member = await team_service.remove_member(team_id, member_id, principal, reason=reason)
    return TeamMemberRead.model_validate(member)


@router.get("/{team_id}/audit", response_model=AuditLogListResponse, summary="Team audit log")
async def list_audit_log(
    team_id: UUID,
    principal: CurrentPrincipal,
    team_service: TeamServiceDep,
    cursor: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    action_type: str | None = None,
) -> AuditLogListResponse:
    bind_team_context(team_id)
    entries, next_cursor, has_more = await team_service.list_audit_log(
        team_id, principal, cursor=cursor, limit=limit, action_type=action_type
    )
    return AuditLogListResponse(
        items=[AuditLogRead.model_validate(e) for e in entries],
        next_cursor=next_cursor,
        has_more=has_more,
    )


# =============================================================================
# Team-side invitation management (owner or delegated manager)
# =============================================================================


@router.post(
    "/{team_id}/invitations",
    response_model=InvitationCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite member",
    description="Create an invitation and email the join link. The token is never returned.",
)
async def create_invitation(
    team_id: UUID,
    invitation_data: InvitationCreateRequest,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
) -> InvitationCreateResponse:
    bind_team_context(team_id)
    invitation, _ = await invitation_service.create_invitation(
        team_id=team_id,
        inviter=principal,
        email=invitation_data.email,
        invited_name=invitation_data.invited_name,
        role=invitation_data.role,
        department=invitation_data.department,
        personal_message=invitation_data.personal_message,
        require_professional_verification=invitation_data.require_professional_verification,
        require_background_check=invitation_data.require_background_check,
    )
    return InvitationCreateResponse(invitation=InvitationRead.model_validate(invitation))


@router.get(
    "/{team_id}/invitations",
    response_model=InvitationListResponse,
    summary="List pending invitations",
)
async def list_invitations(
    team_id: UUID,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
) -> InvitationListResponse:
    bind_team_context(team_id)
    invitations = await invitation_service.list_pending_invitations(team_id, principal)
    return InvitationListResponse(
        invitations=[InvitationRead.model_validate(inv) for inv in invitations],
        total=len(invitations),
    )


@router.delete(
    "/{team_id}/invitations/{invitation_id}",
    response_model=InvitationRead,
    summary="Cancel invitation",
)
async def cancel_invitation(
    team_id: UUID,
    invitation_id: UUID,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
) -> InvitationRead:
    bind_team_context(team_id)
    invitation = await invitation_service.cancel_invitation(team_id, invitation_id, principal)
    return InvitationRead.model_validate(invitation)


@router.post(
    "/{team_id}/invitations/{invitation_id}/resend",
    response_model=InvitationCreateResponse,
    summary="Resend invitation",
    description="Send a reminder with a fresh link. The previous link stops working.",
)
async def resend_invitation(
    team_id: UUID,
    invitation_id: UUID,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
) -> InvitationCreateResponse:
    bind_team_context(team_id)
    invitation, _ = await invitation_service.resend_invitation(team_id, invitation_id, principal)
    return InvitationCreateResponse(
        invitation=InvitationRead.model_validate(invitation),
        message="Invitation resent successfully",
    )
