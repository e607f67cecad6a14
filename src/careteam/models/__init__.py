"""Model exports.

Import from here: `from src.careteam.models import Team, TeamInvitation`
"""

from src.careteam.models.audit import AuditLogEntry
from src.careteam.models.enums import (
    MANAGER_ACCESS_LEVEL,
    ROLE_ACCESS_LEVELS,
    AuditActionType,
    AuditStatus,
    InvitationStatus,
    MFAAttemptKind,
    MFAMethod,
    TeamRole,
)
from src.careteam.models.invitation import TeamInvitation
from src.careteam.models.mfa import (
    MFABackupCode,
    MFACredential,
    MFAVerificationAttempt,
    SMSBackup,
)
from src.careteam.models.team import Team, TeamMember
from src.careteam.models.team_settings import (
    ComplianceSettings,
    MemberPermissions,
    default_permissions,
    dump_settings,
)

__all__ = [
    # Enums
    "AuditActionType",
    "AuditStatus",
    "InvitationStatus",
    "MANAGER_ACCESS_LEVEL",
    "MFAAttemptKind",
    "MFAMethod",
    "ROLE_ACCESS_LEVELS",
    "TeamRole",
    # Settings shapes
    "ComplianceSettings",
    "MemberPermissions",
    "default_permissions",
    "dump_settings",
    # Tables
    "AuditLogEntry",
    "MFABackupCode",
    "MFACredential",
    "MFAVerificationAttempt",
    "SMSBackup",
    "Team",
    "TeamInvitation",
    "TeamMember",
]
