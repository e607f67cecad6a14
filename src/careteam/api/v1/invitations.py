"""Invitee-side invitation endpoints (token holder)."""

from fastapi import APIRouter
from starlette.requests import Request

from src.careteam.api.dependencies import CurrentPrincipal, InvitationServiceDep
from src.careteam.core.rate_limit import TOKEN_SUBMIT_LIMIT, limiter
from src.careteam.schemas import (
    DeclineInvitationRequest,
    InvitationActionResponse,
    InvitationInfoResponse,
    TeamMemberRead,
)

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get(
    "/{token}",
    response_model=InvitationInfoResponse,
    summary="Preview invitation",
    description="Public details of a live invitation for the join page. No authentication.",
    responses={400: {"description": "Invalid or expired invitation"}},
)
@limiter.limit(TOKEN_SUBMIT_LIMIT)
async def get_invitation_info(
    request: Request,
    token: str,
    invitation_service: InvitationServiceDep,
) -> InvitationInfoResponse:
    info = await invitation_service.get_invitation_info(token)
    return InvitationInfoResponse(**info)


@router.post(
    "/{token}/accept",
    response_model=TeamMemberRead,
    summary="Accept invitation",
    responses={
        400: {"description": "Invalid or expired invitation"},
        409: {"description": "Already a member, or the team is full"},
    },
)
@limiter.limit(TOKEN_SUBMIT_LIMIT)
async def accept_invitation(
    request: Request,
    token: str,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
) -> TeamMemberRead:
    member = await invitation_service.accept_invitation(token, principal)
    return TeamMemberRead.model_validate(member)


@router.post(
    "/{token}/decline",
    response_model=InvitationActionResponse,
    summary="Decline invitation",
)
@limiter.limit(TOKEN_SUBMIT_LIMIT)
async def decline_invitation(
    request: Request,
    token: str,
    principal: CurrentPrincipal,
    invitation_service: InvitationServiceDep,
    decline_data: DeclineInvitationRequest | None = None,
) -> InvitationActionResponse:
    reason = decline_data.reason if decline_data else None
    await invitation_service.decline_invitation(token, principal, reason)
    return InvitationActionResponse(message="Invitation declined")
