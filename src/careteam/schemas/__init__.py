from src.careteam.schemas.audit import AuditLogListResponse, AuditLogRead
from src.careteam.schemas.invitation import (
    DeclineInvitationRequest,
    InvitationActionResponse,
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationInfoResponse,
    InvitationListResponse,
    InvitationRead,
)
from src.careteam.schemas.mfa import (
    BackupCodesResponse,
    MFACodeRequest,
    MFAEnrollRequest,
    MFAMessageResponse,
    MFASetupResponse,
    MFAStatusResponse,
    MFAVerifyRequest,
    MFAVerifyResponse,
    SMSBackupRequest,
    SMSBackupResponse,
)
from src.careteam.schemas.pagination import PaginatedResponse
from src.careteam.schemas.team import (
    TeamCreate,
    TeamMemberListResponse,
    TeamMemberRead,
    TeamMemberUpdate,
    TeamRead,
)

__all__ = [
    # Audit
    "AuditLogListResponse",
    "AuditLogRead",
    # Invitations
    "DeclineInvitationRequest",
    "InvitationActionResponse",
    "InvitationCreateRequest",
    "InvitationCreateResponse",
    "InvitationInfoResponse",
    "InvitationListResponse",
    "InvitationRead",
    # MFA
    "BackupCodesResponse",
    "MFACodeRequest",
    "MFAEnrollRequest",
    "MFAMessageResponse",
    "MFASetupResponse",
    "MFAStatusResponse",
    "MFAVerifyRequest",
    "MFAVerifyResponse",
    "SMSBackupRequest",
    "SMSBackupResponse",
    # Pagination
    "PaginatedResponse",
    # Team
    "TeamCreate",
    "TeamMemberListResponse",
    "TeamMemberRead",
    "TeamMemberUpdate",
    "TeamRead",
]
