"""MFA credential models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from src.careteam.models.base import utc_now


class MFACredential(SQLModel, table=True):
    """A principal's TOTP enrollment (one row per principal).

    is_enabled stays false until a submitted code has been verified against
    the stored secret.
    """

    __tablename__ = "mfa_credentials"

    user_id: UUID = Field(primary_key=True)
    totp_secret_encrypted: str | None = Field(default=None, max_length=255)
    totp_enabled: bool = Field(default=False)
    is_enabled: bool = Field(default=False)
    enrollment_started_at: datetime | None = Field(default=None)
    enrolled_at: datetime | None = Field(default=None)
    last_used_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_pending(self) -> bool:
        return self.totp_secret_encrypted is not None and not self.is_enabled


class MFABackupCode(SQLModel, table=True):
    """One single-use backup code, stored as a hash. Consumed by DELETE."""

    __tablename__ = "mfa_backup_codes"
    __table_args__ = (UniqueConstraint("user_id", "code_hash", name="uq_mfa_backup_codes_hash"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    code_hash: str = Field(max_length=64)
    created_at: datetime = Field(default_factory=utc_now)


class SMSBackup(SQLModel, table=True):
    __tablename__ = "mfa_sms_backups"

    user_id: UUID = Field(primary_key=True)
    phone_number: str = Field(max_length=32)
    country_code: str = Field(default="+61", max_length=6)
    is_verified: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def e164(self) -> str:
        number = self.phone_number.lstrip("0")
        return f"{self.country_code}{number}"


class MFAVerificationAttempt(SQLModel, table=True):
    """Every factor check, successful or not. Drives the lockout policy."""

    __tablename__ = "mfa_verification_attempts"
    __table_args__ = (Index("ix_mfa_verification_attempts_user_created", "user_id", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID
    method: str = Field(max_length=20)  # MFAMethod value
    purpose: str = Field(max_length=20)  # MFAAttemptKind value
    success: bool
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
