"""Service factory dependencies.

Every service for a request shares the request's session, so audit entries
staged by a service commit with the change they describe.
"""

from typing import Annotated

from fastapi import Depends

from src.careteam.api.dependencies.db import DBSession
from src.careteam.api.dependencies.repositories import (
    AttemptRepo,
    AuditLogRepo,
    BackupCodeRepo,
    CredentialRepo,
    InvitationRepo,
    MemberRepo,
    SMSBackupRepo,
    TeamRepo,
)
from src.careteam.core.notifications import (
    InvitationNotifier,
    ResendInvitationNotifier,
    SMSGateway,
    UnconfiguredSMSGateway,
)
from src.careteam.services import (
    AccessPolicy,
    AuditService,
    InvitationService,
    MFAEnrollmentService,
    MFAVerificationService,
    TeamService,
)


def get_invitation_notifier() -> InvitationNotifier:
    """Email delivery for invitations. Overridden in tests."""
    return ResendInvitationNotifier()


def get_sms_gateway() -> SMSGateway:
    """SMS provider for the backup factor. Overridden where one is wired in."""
    return UnconfiguredSMSGateway()


Notifier = Annotated[InvitationNotifier, Depends(get_invitation_notifier)]
SMSGatewayDep = Annotated[SMSGateway, Depends(get_sms_gateway)]


def get_audit_service(audit_repo: AuditLogRepo, session: DBSession) -> AuditService:
    return AuditService(audit_repo, session)


def get_access_policy(member_repo: MemberRepo) -> AccessPolicy:
    return AccessPolicy(member_repo)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]
AccessPolicyDep = Annotated[AccessPolicy, Depends(get_access_policy)]


def get_team_service(
    team_repo: TeamRepo,
    member_repo: MemberRepo,
    audit_service: AuditServiceDep,
    access_policy: AccessPolicyDep,
    session: DBSession,
) -> TeamService:
    return TeamService(team_repo, member_repo, audit_service, access_policy, session)


def get_invitation_service(
    invitation_repo: InvitationRepo,
    member_repo: MemberRepo,
    team_repo: TeamRepo,
    audit_service: AuditServiceDep,
    access_policy: AccessPolicyDep,
    notifier: Notifier,
    session: DBSession,
) -> InvitationService:
    return InvitationService(
        invitation_repo,
        member_repo,
        team_repo,
        audit_service,
        access_policy,
        notifier,
        session,
    )


def get_mfa_verification_service(
    credential_repo: CredentialRepo,
    backup_code_repo: BackupCodeRepo,
    sms_repo: SMSBackupRepo,
    attempt_repo: AttemptRepo,
    audit_service: AuditServiceDep,
    sms_gateway: SMSGatewayDep,
    session: DBSession,
) -> MFAVerificationService:
    return MFAVerificationService(
        credential_repo,
        backup_code_repo,
        sms_repo,
        attempt_repo,
        audit_service,
        session,
        sms_gateway=sms_gateway,
    )


MFAVerificationServiceDep = Annotated[
    MFAVerificationService, Depends(get_mfa_verification_service)
]


def get_mfa_enrollment_service(
    credential_repo: CredentialRepo,
    backup_code_repo: BackupCodeRepo,
    sms_repo: SMSBackupRepo,
    member_repo: MemberRepo,
    team_repo: TeamRepo,
    verifier: MFAVerificationServiceDep,
    audit_service: AuditServiceDep,
    sms_gateway: SMSGatewayDep,
    session: DBSession,
) -> MFAEnrollmentService:
    return MFAEnrollmentService(
        credential_repo,
        backup_code_repo,
        sms_repo,
        member_repo,
        team_repo,
        verifier,
        audit_service,
        session,
        sms_gateway=sms_gateway,
    )


TeamServiceDep = Annotated[TeamService, Depends(get_team_service)]
InvitationServiceDep = Annotated[InvitationService, Depends(get_invitation_service)]
MFAEnrollmentServiceDep = Annotated[MFAEnrollmentService, Depends(get_mfa_enrollment_service)]
