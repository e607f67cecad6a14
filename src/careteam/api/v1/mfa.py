"""MFA enrollment and verification endpoints."""

from fastapi import APIRouter
from starlette.requests import Request

from src.careteam.api.dependencies import (
    CurrentPrincipal,
    MFAEnrollmentServiceDep,
    MFAVerificationServiceDep,
)
from src.careteam.core.rate_limit import CODE_SUBMIT_LIMIT, limiter
from src.careteam.schemas import (
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

router = APIRouter(prefix="/mfa", tags=["mfa"])

_CODE_RESPONSES: dict[int | str, dict[str, str]] = {
    400: {"description": "Invalid verification code"},
    429: {"description": "Locked out after repeated failures (see Retry-After)"},
}


@router.get("/status", response_model=MFAStatusResponse, summary="MFA status")
async def get_status(
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> MFAStatusResponse:
    status = await enrollment_service.get_status(principal)
    return MFAStatusResponse(
        is_enabled=status.is_enabled,
        is_enrolled=status.is_enrolled,
        enrollment_date=status.enrollment_date,
        last_used=status.last_used,
        backup_codes_remaining=status.backup_codes_remaining,
        methods=status.methods,
        requires_healthcare_mfa=status.requires_healthcare_mfa,
    )


@router.post(
    "/enroll",
    response_model=MFASetupResponse,
    summary="Start enrollment",
    description="Returns the secret, QR code and backup codes once. MFA stays off until verified.",
)
async def initiate_enrollment(
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
    enroll_data: MFAEnrollRequest | None = None,
) -> MFASetupResponse:
    setup = await enrollment_service.initiate_enrollment(
        principal, app_name=enroll_data.app_name if enroll_data else None
    )
    return MFASetupResponse(
        secret=setup.secret,
        qr_code=setup.qr_code,
        provisioning_uri=setup.provisioning_uri,
        backup_codes=setup.backup_codes,
        enrollment_date=setup.enrollment_date,
    )


@router.post(
    "/enroll/verify",
    response_model=MFAMessageResponse,
    summary="Complete enrollment",
    responses=_CODE_RESPONSES,
)
@limiter.limit(CODE_SUBMIT_LIMIT)
async def complete_enrollment(
    request: Request,
    code_data: MFACodeRequest,
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> MFAMessageResponse:
    await enrollment_service.complete_enrollment(principal, code_data.code)
    return MFAMessageResponse(message="MFA enabled")


@router.post(
    "/verify",
    response_model=MFAVerifyResponse,
    summary="Verify second factor",
    responses=_CODE_RESPONSES,
)
@limiter.limit(CODE_SUBMIT_LIMIT)
async def verify(
    request: Request,
    verify_data: MFAVerifyRequest,
    principal: CurrentPrincipal,
    verification_service: MFAVerificationServiceDep,
) -> MFAVerifyResponse:
    method = await verification_service.verify(principal, verify_data.code, verify_data.method)
    return MFAVerifyResponse(method=method)


@router.post(
    "/backup-codes",
    response_model=BackupCodesResponse,
    summary="Regenerate backup codes",
    description="Invalidates every existing backup code. The new codes are shown once.",
)
async def generate_backup_codes(
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> BackupCodesResponse:
    codes = await enrollment_service.generate_backup_codes(principal)
    return BackupCodesResponse(backup_codes=codes)


@router.post(
    "/disable",
    response_model=MFAMessageResponse,
    summary="Disable MFA",
    responses=_CODE_RESPONSES,
)
@limiter.limit(CODE_SUBMIT_LIMIT)
async def disable_mfa(
    request: Request,
    code_data: MFACodeRequest,
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> MFAMessageResponse:
    await enrollment_service.disable_mfa(principal, code_data.code)
    return MFAMessageResponse(message="MFA disabled")


@router.post("/sms", response_model=SMSBackupResponse, summary="Register SMS backup")
async def setup_sms_backup(
    sms_data: SMSBackupRequest,
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> SMSBackupResponse:
    sms = await enrollment_service.setup_sms_backup(
        principal, sms_data.phone_number, sms_data.country_code
    )
    return SMSBackupResponse(
        country_code=sms.country_code,
        last_digits=sms.phone_number[-3:],
        is_verified=sms.is_verified,
    )


@router.post(
    "/sms/verify",
    response_model=SMSBackupResponse,
    summary="Verify SMS backup",
    responses=_CODE_RESPONSES,
)
@limiter.limit(CODE_SUBMIT_LIMIT)
async def verify_sms_backup(
    request: Request,
    code_data: MFACodeRequest,
    principal: CurrentPrincipal,
    enrollment_service: MFAEnrollmentServiceDep,
) -> SMSBackupResponse:
    sms = await enrollment_service.verify_sms_backup(principal, code_data.code)
    return SMSBackupResponse(
        country_code=sms.country_code,
        last_digits=sms.phone_number[-3:],
        is_verified=sms.is_verified,
    )
