"""Shared enums for models."""

from enum import Enum


class TeamRole(str, Enum):
    """Role of a member within a care team."""

    OWNER = "owner"
    MANAGER = "manager"
    PRACTITIONER = "practitioner"
    NURSE = "nurse"
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    BILLING = "billing"
    MARKETING = "marketing"
    COMPLIANCE = "compliance"
    GUEST = "guest"


# Default access level granted to a new member of each role
ROLE_ACCESS_LEVELS: dict[TeamRole, int] = {
    TeamRole.OWNER: 100,
    TeamRole.MANAGER: 80,
    TeamRole.COMPLIANCE: 70,
    TeamRole.PRACTITIONER: 60,
    TeamRole.NURSE: 50,
    TeamRole.ADMIN: 50,
    TeamRole.BILLING: 40,
    TeamRole.MARKETING: 40,
    TeamRole.RECEPTIONIST: 30,
    TeamRole.GUEST: 10,
}

# Minimum access level that may manage the team without explicit permissions
MANAGER_ACCESS_LEVEL = ROLE_ACCESS_LEVELS[TeamRole.MANAGER]


class InvitationStatus(str, Enum):
    """Invitation lifecycle. Only PENDING may transition."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class AuditActionType(str, Enum):
    """Category of an audit log entry."""

    INVITATION = "invitation"
    MEMBER_UPDATE = "member_update"
    DEACTIVATION = "deactivation"
    SECURITY = "security"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class MFAMethod(str, Enum):
    """Factor presented in a verification attempt."""

    TOTP = "totp"
    BACKUP_CODES = "backup_codes"
    SMS = "sms"


class MFAAttemptKind(str, Enum):
    """What a recorded verification attempt was for."""

    VERIFY = "verify"
    ENROLLMENT = "enrollment"
    DISABLE = "disable_mfa"
    SMS_SETUP = "sms_setup"
