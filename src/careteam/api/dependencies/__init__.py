"""FastAPI dependency injection definitions.

Re-exports all dependencies for convenience.
"""

from src.careteam.api.dependencies.auth import CurrentPrincipal, get_current_principal
from src.careteam.api.dependencies.db import DBSession, get_db_session
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
from src.careteam.api.dependencies.services import (
    InvitationServiceDep,
    MFAEnrollmentServiceDep,
    MFAVerificationServiceDep,
    TeamServiceDep,
    get_invitation_notifier,
    get_invitation_service,
    get_mfa_enrollment_service,
    get_mfa_verification_service,
    get_sms_gateway,
    get_team_service,
)

__all__ = [
    # Database
    "DBSession",
    "get_db_session",
    # Auth
    "CurrentPrincipal",
    "get_current_principal",
    # Repositories
    "AttemptRepo",
    "AuditLogRepo",
    "BackupCodeRepo",
    "CredentialRepo",
    "InvitationRepo",
    "MemberRepo",
    "SMSBackupRepo",
    "TeamRepo",
    # Services
    "InvitationServiceDep",
    "MFAEnrollmentServiceDep",
    "MFAVerificationServiceDep",
    "TeamServiceDep",
    "get_invitation_notifier",
    "get_invitation_service",
    "get_mfa_enrollment_service",
    "get_mfa_verification_service",
    "get_sms_gateway",
    "get_team_service",
]
