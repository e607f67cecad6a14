"""MFA schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.careteam.models import MFAMethod


class MFAEnrollRequest(BaseModel):
    app_name: str | None = Field(default=None, max_length=100)


class MFASetupResponse(BaseModel):
    """Returned once. The secret and backup codes cannot be retrieved again."""

    secret: str
    qr_code: str = Field(description="data: URL of an SVG QR code")
    provisioning_uri: str
    backup_codes: list[str]
    enrollment_date: datetime


class MFACodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)


class MFAVerifyRequest(MFACodeRequest):
    method: MFAMethod = MFAMethod.TOTP


class MFAVerifyResponse(BaseModel):
    verified: bool = True
    method: MFAMethod


class MFAStatusResponse(BaseModel):
    is_enabled: bool
    is_enrolled: bool
    enrollment_date: datetime | None
    last_used: datetime | None
    backup_codes_remaining: int
    methods: list[str]
    requires_healthcare_mfa: bool


class BackupCodesResponse(BaseModel):
    backup_codes: list[str]


class SMSBackupRequest(BaseModel):
    phone_number: str = Field(min_length=6, max_length=32)
    country_code: str | None = Field(default=None, max_length=6)


class SMSBackupResponse(BaseModel):
    country_code: str
    last_digits: str
    is_verified: bool


class MFAMessageResponse(BaseModel):
    message: str
