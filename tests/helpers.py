"""Test helpers: collaborator fakes, service wiring and common data creation."""

import time
from dataclasses import dataclass, field
from typing import TypeVar
from uuid import UUID

import pyotp
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from src.careteam.core.config import get_settings
from src.careteam.core.exceptions import NotificationError
from src.careteam.core.notifications import InvitationEmail
from src.careteam.core.security import Principal, create_access_token, decrypt_secret
from src.careteam.models import MFACredential, Team, TeamMember
from src.careteam.repositories import (
    AuditLogRepository,
    BackupCodeRepository,
    MFACredentialRepository,
    SMSBackupRepository,
    TeamInvitationRepository,
    TeamMemberRepository,
    TeamRepository,
    VerificationAttemptRepository,
)
from src.careteam.services import (
    AccessPolicy,
    AuditService,
    InvitationService,
    MFAEnrollmentService,
    MFAVerificationService,
    TeamService,
)

SMS_TEST_CODE = "246810"


# --- Collaborator fakes ---


@dataclass
class FakeNotifier:
    """Records invitation emails instead of sending them."""

    sent: list[InvitationEmail] = field(default_factory=list)
    fail: bool = False

    async def send_invitation(self, email: InvitationEmail) -> None:
        if self.fail:
            raise NotificationError("provider unavailable")
        self.sent.append(email)

    @property
    def last_token(self) -> str:
        return self.sent[-1].join_url.rsplit("/", 1)[-1]


@dataclass
class FakeSMSGateway:
    """Accepts SMS_TEST_CODE for any number a challenge was sent to."""

    challenged: list[str] = field(default_factory=list)

    async def send_challenge(self, phone_number: str) -> bool:
        self.challenged.append(phone_number)
        return True

    async def verify(self, phone_number: str, code: str) -> bool:
        return phone_number in self.challenged and code == SMS_TEST_CODE


# --- Service wiring ---


@dataclass
class Services:
    teams: TeamService
    invitations: InvitationService
    verifier: MFAVerificationService
    mfa: MFAEnrollmentService


def build_services(
    session: AsyncSession,
    notifier: FakeNotifier,
    sms_gateway: FakeSMSGateway | None = None,
) -> Services:
    """Wire every service onto one session, as the request dependencies do."""
    settings = get_settings()
    team_repo = TeamRepository(session)
    member_repo = TeamMemberRepository(session)
    audit = AuditService(AuditLogRepository(session), session)
    access_policy = AccessPolicy(member_repo)
    verifier = MFAVerificationService(
        MFACredentialRepository(session),
        BackupCodeRepository(session),
        SMSBackupRepository(session),
        VerificationAttemptRepository(session),
        audit,
        session,
        sms_gateway=sms_gateway,
        settings=settings,
    )
    return Services(
        teams=TeamService(team_repo, member_repo, audit, access_policy, session, settings),
        invitations=InvitationService(
            TeamInvitationRepository(session),
            member_repo,
            team_repo,
            audit,
            access_policy,
            notifier,
            session,
            settings,
        ),
        verifier=verifier,
        mfa=MFAEnrollmentService(
            MFACredentialRepository(session),
            BackupCodeRepository(session),
            SMSBackupRepository(session),
            member_repo,
            team_repo,
            verifier,
            audit,
            session,
            sms_gateway=sms_gateway,
            settings=settings,
        ),
    )


# --- Data creation ---


M = TypeVar("M", bound=SQLModel)


async def fetch(session: AsyncSession, model: type[M], key: UUID) -> M | None:
    """Load a row fresh from the database, bypassing stale identity-map state."""
    return await session.get(model, key, populate_existing=True)


async def invite(
    services: Services,
    team: Team,
    inviter: Principal,
    email: str = "alice@example.com",
    role: str = "practitioner",
    invited_name: str = "Alice Nguyen",
    **kwargs,
) -> tuple[UUID, str]:
    """Create an invitation and return (invitation_id, token) as plain values."""
    invitation, token = await services.invitations.create_invitation(
        team_id=team.id,
        inviter=inviter,
        email=email,
        invited_name=invited_name,
        role=role,
        **kwargs,
    )
    return invitation.id, token


async def join_team(
    services: Services,
    team: Team,
    owner: Principal,
    principal: Principal,
    role: str = "nurse",
) -> UUID:
    """Invite `principal` and accept on their behalf. Returns the member id."""
    _, token = await invite(services, team, owner, email=principal.email, role=role)
    member: TeamMember = await services.invitations.accept_invitation(token, principal)
    return member.id


# --- MFA ---


async def stored_secret(session: AsyncSession, principal: Principal) -> str:
    credential = await fetch(session, MFACredential, principal.user_id)
    assert credential is not None and credential.totp_secret_encrypted
    return decrypt_secret(credential.totp_secret_encrypted, get_settings().mfa_encryption_key)


async def current_totp(session: AsyncSession, principal: Principal) -> str:
    """The code an authenticator app would show right now."""
    return pyotp.TOTP(await stored_secret(session, principal)).now()


def wrong_totp(secret: str) -> str:
    """A 6-digit code outside the ±2 step acceptance window (with a step of margin)."""
    totp = pyotp.TOTP(secret)
    now = int(time.time())
    accepted = {totp.at(now + step * 30) for step in range(-3, 4)}
    return next(
        candidate
        for candidate in (f"{n:06d}" for n in range(0, 1_000_000, 7919))
        if candidate not in accepted
    )


async def enable_mfa(services: Services, session: AsyncSession, principal: Principal) -> list[str]:
    """Enroll and verify. Returns the initial backup codes."""
    setup = await services.mfa.initiate_enrollment(principal)
    await services.mfa.complete_enrollment(principal, await current_totp(session, principal))
    return setup.backup_codes


# --- HTTP ---


def auth_headers(principal: Principal) -> dict[str, str]:
    token = create_access_token(principal.user_id, principal.email)
    return {"Authorization": f"Bearer {token}"}
