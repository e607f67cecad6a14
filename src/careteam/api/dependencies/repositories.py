"""Repository factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.careteam.api.dependencies.db import DBSession
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


def get_team_repository(session: DBSession) -> TeamRepository:
    return TeamRepository(session)


def get_member_repository(session: DBSession) -> TeamMemberRepository:
    return TeamMemberRepository(session)


def get_invitation_repository(session: DBSession) -> TeamInvitationRepository:
    return TeamInvitationRepository(session)


def get_audit_log_repository(session: DBSession) -> AuditLogRepository:
    return AuditLogRepository(session)


def get_credential_repository(session: DBSession) -> MFACredentialRepository:
    return MFACredentialRepository(session)


def get_backup_code_repository(session: DBSession) -> BackupCodeRepository:
    return BackupCodeRepository(session)


def get_sms_backup_repository(session: DBSession) -> SMSBackupRepository:
    return SMSBackupRepository(session)


def get_attempt_repository(session: DBSession) -> VerificationAttemptRepository:
    return VerificationAttemptRepository(session)


TeamRepo = Annotated[TeamRepository, Depends(get_team_repository)]
MemberRepo = Annotated[TeamMemberRepository, Depends(get_member_repository)]
InvitationRepo = Annotated[TeamInvitationRepository, Depends(get_invitation_repository)]
AuditLogRepo = Annotated[AuditLogRepository, Depends(get_audit_log_repository)]
CredentialRepo = Annotated[MFACredentialRepository, Depends(get_credential_repository)]
BackupCodeRepo = Annotated[BackupCodeRepository, Depends(get_backup_code_repository)]
SMSBackupRepo = Annotated[SMSBackupRepository, Depends(get_sms_backup_repository)]
AttemptRepo = Annotated[VerificationAttemptRepository, Depends(get_attempt_repository)]
