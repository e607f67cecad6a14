"""Repository layer - data access abstraction."""

from src.careteam.repositories.audit import AuditLogRepository
from src.careteam.repositories.base import BaseRepository
from src.careteam.repositories.invitation import TeamInvitationRepository
from src.careteam.repositories.mfa import (
    BackupCodeRepository,
    MFACredentialRepository,
    SMSBackupRepository,
    VerificationAttemptRepository,
)
from src.careteam.repositories.team import TeamMemberRepository, TeamRepository

__all__ = [
    "AuditLogRepository",
    "BackupCodeRepository",
    "BaseRepository",
    "MFACredentialRepository",
    "SMSBackupRepository",
    "TeamInvitationRepository",
    "TeamMemberRepository",
    "TeamRepository",
    "VerificationAttemptRepository",
]
