from src.careteam.services.access_policy import AccessPolicy, TeamCapability
from src.careteam.services.audit_service import AuditService
from src.careteam.services.invitation_service import InvitationService
from src.careteam.services.lockout import LockoutPolicy, LockoutState
from src.careteam.services.mfa_enrollment_service import MFAEnrollmentService, MFASetup, MFAStatus
from src.careteam.services.mfa_verification_service import MFAVerificationService
from src.careteam.services.team_service import TeamService

__all__ = [
    "AccessPolicy",
    "AuditService",
    "InvitationService",
    "LockoutPolicy",
    "LockoutState",
    "MFAEnrollmentService",
    "MFASetup",
    "MFAStatus",
    "MFAVerificationService",
    "TeamCapability",
    "TeamService",
]
