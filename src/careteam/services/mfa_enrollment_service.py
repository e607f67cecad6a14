"""MFA enrollment - TOTP setup, backup codes, SMS backup and disable."""

import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.config import Settings, get_settings
from src.careteam.core.exceptions import (
    CareTeamError,
    InvalidCodeError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from src.careteam.core.logging import get_logger
from src.careteam.core.notifications import SMSGateway, UnconfiguredSMSGateway
from src.careteam.core.security import (
    Principal,
    encrypt_secret,
    generate_backup_codes,
    generate_totp_secret,
    hash_backup_code,
    qr_code_data_url,
)
from src.careteam.models import (
    AuditActionType,
    MFAAttemptKind,
    MFACredential,
    MFAMethod,
    SMSBackup,
)
from src.careteam.models.base import utc_now
from src.careteam.repositories import (
    BackupCodeRepository,
    MFACredentialRepository,
    SMSBackupRepository,
    TeamMemberRepository,
    TeamRepository,
)
from src.careteam.services.audit_service import AuditService
from src.careteam.services.mfa_verification_service import MFAVerificationService

logger = get_logger(__name__)

_PHONE_RE = re.compile(r"^\d{6,15}$")
_COUNTRY_CODE_RE = re.compile(r"^\+\d{1,4}$")


@dataclass(frozen=True)
class MFASetup:
    """Returned once from initiate_enrollment. Nothing here can be fetched again."""

    secret: str
    qr_code: str
    provisioning_uri: str
    backup_codes: list[str]
    enrollment_date: datetime


@dataclass(frozen=True)
class MFAStatus:
    is_enabled: bool
    is_enrolled: bool
    enrollment_date: datetime | None
    last_used: datetime | None
    backup_codes_remaining: int
    methods: list[str] = field(default_factory=list)
    requires_healthcare_mfa: bool = False


class MFAEnrollmentService:
    """Moves a principal through NO_MFA -> PENDING_VERIFICATION -> ENABLED and back.

    Code checks, attempt rows and lockout are delegated to
    MFAVerificationService so every path shares one lockout counter.
    """

    def __init__(
        self,
        credential_repo: MFACredentialRepository,
        backup_code_repo: BackupCodeRepository,
        sms_repo: SMSBackupRepository,
        member_repo: TeamMemberRepository,
        team_repo: TeamRepository,
        verifier: MFAVerificationService,
        audit_service: AuditService,
        session: AsyncSession,
        sms_gateway: SMSGateway | None = None,
        settings: Settings | None = None,
    ):
        self.credential_repo = credential_repo
        self.backup_code_repo = backup_code_repo
        self.sms_repo = sms_repo
        self.member_repo = member_repo
        self.team_repo = team_repo
        self.verifier = verifier
        self.audit = audit_service
        self.session = session
        self.sms_gateway = sms_gateway or UnconfiguredSMSGateway()
        self.settings = settings or get_settings()

    async def initiate_enrollment(
        self, principal: Principal, app_name: str | None = None
    ) -> MFASetup:
        """Start (or restart) TOTP enrollment.

        Stores the encrypted secret and a fresh set of backup code hashes.
        MFA stays disabled until complete_enrollment verifies a code.

        Raises:
            InvalidStateError: If MFA is already enabled.
        """
        issuer = app_name or self.settings.mfa_issuer
        now = utc_now()

        try:
            credential = await self.credential_repo.get_for_user(principal.user_id)
            if credential is not None and credential.is_enabled:
                raise InvalidStateError("MFA is already enabled; disable it before re-enrolling")

            totp = generate_totp_secret(label=f"{issuer} ({principal.email})", issuer=issuer)
            backup_codes = generate_backup_codes(self.settings.backup_code_count)

            if credential is None:
                credential = MFACredential(user_id=principal.user_id, created_at=now)
                self.credential_repo.add(credential)
            credential.totp_secret_encrypted = encrypt_secret(
                totp.base32, self.settings.mfa_encryption_key
            )
            credential.is_enabled = False
            credential.totp_enabled = False
            credential.enrollment_started_at = now
            credential.enrolled_at = None
            credential.updated_at = now

            await self.backup_code_repo.replace_all(
                principal.user_id, [hash_backup_code(code) for code in backup_codes]
            )

            self.audit.stage(
                action="MFA enrollment initiated",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={"method": MFAMethod.TOTP.value, "backup_codes_count": len(backup_codes)},
            )
            await self.session.commit()

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to initiate MFA enrollment", error=str(e))
            raise StorageError() from e

        logger.info("MFA enrollment initiated")
        return MFASetup(
            secret=totp.base32,
            qr_code=qr_code_data_url(totp.provisioning_uri),
            provisioning_uri=totp.provisioning_uri,
            backup_codes=backup_codes,
            enrollment_date=now,
        )

    async def complete_enrollment(self, principal: Principal, code: str) -> MFACredential:
        """Enable MFA once the authenticator produces a valid code.

        Raises:
            LockedOutError: Too many recent failures.
            NotFoundError: No enrollment in progress.
            InvalidCodeError: Code did not verify; enrollment stays pending.
        """
        await self.verifier.ensure_not_locked(principal, MFAAttemptKind.ENROLLMENT)

        credential = await self.credential_repo.get_for_user(principal.user_id)
        if credential is None or not credential.totp_secret_encrypted:
            raise NotFoundError("No MFA enrollment in progress")
        if credential.is_enabled:
            raise InvalidStateError("MFA is already enabled")

        if not await self.verifier.check_factor(principal, credential, code, MFAMethod.TOTP):
            await self.verifier.record_failure(
                principal,
                MFAMethod.TOTP,
                MFAAttemptKind.ENROLLMENT,
                "MFA enrollment verification failed",
            )
            raise InvalidCodeError()

        now = utc_now()
        try:
            credential.is_enabled = True
            credential.totp_enabled = True
            credential.enrolled_at = now
            credential.last_used_at = now
            credential.updated_at = now
            self.verifier.stage_attempt(
                principal, MFAMethod.TOTP, MFAAttemptKind.ENROLLMENT, success=True
            )
            self.audit.stage(
                action="MFA enrollment completed",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={"method": MFAMethod.TOTP.value},
                compliance_impact=True,
            )
            await self.session.commit()
            await self.session.refresh(credential)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to complete MFA enrollment", error=str(e))
            raise StorageError() from e

        logger.info("MFA enrollment completed")
        return credential

    async def generate_backup_codes(self, principal: Principal) -> list[str]:
        """Replace every backup code with a fresh set. Returns the plaintext once."""
        try:
            credential = await self.credential_repo.get_for_user(principal.user_id)
            if credential is None or not credential.is_enabled:
                raise InvalidStateError("MFA must be enabled to generate backup codes")

            codes = generate_backup_codes(self.settings.backup_code_count)
            await self.backup_code_repo.replace_all(
                principal.user_id, [hash_backup_code(code) for code in codes]
            )
            self.audit.stage(
                action="MFA backup codes regenerated",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={"codes_count": len(codes)},
                compliance_impact=True,
            )
            await self.session.commit()

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to regenerate backup codes", error=str(e))
            raise StorageError() from e

        logger.info("MFA backup codes regenerated", codes_count=len(codes))
        return codes

    async def disable_mfa(self, principal: Principal, code: str) -> None:
        """Turn MFA off after a valid TOTP or backup code.

        Clears the secret and deletes backup codes and any SMS backup. Teams
        that require MFA for the principal's role are not consulted as a
        gate; the audit entry records that the requirement is now bypassed.
        """
        credential = await self.credential_repo.get_for_user(principal.user_id)
        if credential is None:
            raise NotFoundError("MFA is not set up")
        if not credential.is_enabled:
            raise InvalidStateError("MFA is not enabled")

        await self.verifier.ensure_not_locked(principal, MFAAttemptKind.DISABLE)

        method = MFAMethod.TOTP
        verified = await self.verifier.check_factor(principal, credential, code, MFAMethod.TOTP)
        if not verified:
            method = MFAMethod.BACKUP_CODES
            verified = await self.verifier.check_factor(
                principal, credential, code, MFAMethod.BACKUP_CODES
            )
        if not verified:
            await self.verifier.record_failure(
                principal, MFAMethod.TOTP, MFAAttemptKind.DISABLE, "MFA disable rejected"
            )
            raise InvalidCodeError()

        try:
            bypasses_requirement = await self._role_requires_mfa(principal)

            now = utc_now()
            credential.is_enabled = False
            credential.totp_enabled = False
            credential.totp_secret_encrypted = None
            credential.enrollment_started_at = None
            credential.enrolled_at = None
            credential.updated_at = now
            await self.backup_code_repo.delete_all(principal.user_id)
            await self.sms_repo.delete_for_user(principal.user_id)

            self.verifier.stage_attempt(principal, method, MFAAttemptKind.DISABLE, success=True)
            self.audit.stage(
                action="MFA disabled",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={
                    "method": method.value,
                    "bypasses_role_requirement": bypasses_requirement,
                },
                compliance_impact=True,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to disable MFA", error=str(e))
            raise StorageError() from e

        if bypasses_requirement:
            logger.warning("MFA disabled for a role that requires it")
        logger.info("MFA disabled", method=method.value)

    async def get_status(self, principal: Principal) -> MFAStatus:
        credential = await self.credential_repo.get_for_user(principal.user_id)
        requires_mfa = await self._role_requires_mfa(principal)

        if credential is None:
            return MFAStatus(
                is_enabled=False,
                is_enrolled=False,
                enrollment_date=None,
                last_used=None,
                backup_codes_remaining=0,
                requires_healthcare_mfa=requires_mfa,
            )

        remaining = await self.backup_code_repo.count_remaining(principal.user_id)
        methods: list[str] = []
        if credential.is_enabled:
            methods.append(MFAMethod.TOTP.value)
            if remaining:
                methods.append(MFAMethod.BACKUP_CODES.value)
            sms = await self.sms_repo.get_for_user(principal.user_id)
            if sms is not None and sms.is_verified:
                methods.append(MFAMethod.SMS.value)

        return MFAStatus(
            is_enabled=credential.is_enabled,
            is_enrolled=credential.totp_secret_encrypted is not None,
            enrollment_date=credential.enrolled_at,
            last_used=credential.last_used_at,
            backup_codes_remaining=remaining if credential.is_enabled else 0,
            methods=methods,
            requires_healthcare_mfa=requires_mfa,
        )

    async def setup_sms_backup(
        self,
        principal: Principal,
        phone_number: str,
        country_code: str | None = None,
    ) -> SMSBackup:
        """Register an unverified SMS backup number and send a challenge."""
        number = re.sub(r"[\s\-()]", "", phone_number or "")
        country_code = country_code or self.settings.sms_default_country_code
        if not _PHONE_RE.match(number):
            raise ValidationError("Phone number must contain 6 to 15 digits")
        if not _COUNTRY_CODE_RE.match(country_code):
            raise ValidationError("Country code must look like +61")

        try:
            credential = await self.credential_repo.get_for_user(principal.user_id)
            if credential is None or not credential.is_enabled:
                raise InvalidStateError("MFA must be enabled before adding an SMS backup")

            now = utc_now()
            sms = await self.sms_repo.get_for_user(principal.user_id)
            if sms is None:
                sms = SMSBackup(user_id=principal.user_id, phone_number=number, created_at=now)
                self.sms_repo.add(sms)
            sms.phone_number = number
            sms.country_code = country_code
            sms.is_verified = False
            sms.updated_at = now

            self.audit.stage(
                action="SMS backup registered",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={"country_code": country_code, "last_digits": number[-3:]},
            )
            await self.session.commit()
            await self.session.refresh(sms)

        except CareTeamError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to register SMS backup", error=str(e))
            raise StorageError() from e

        if not await self.sms_gateway.send_challenge(sms.e164):
            logger.warning("SMS challenge was not sent")
        return sms

    async def verify_sms_backup(self, principal: Principal, code: str) -> SMSBackup:
        await self.verifier.ensure_not_locked(principal, MFAAttemptKind.SMS_SETUP)

        sms = await self.sms_repo.get_for_user(principal.user_id)
        if sms is None:
            raise NotFoundError("No SMS backup registered")

        if not code or not await self.sms_gateway.verify(sms.e164, code.strip()):
            await self.verifier.record_failure(
                principal, MFAMethod.SMS, MFAAttemptKind.SMS_SETUP, "SMS backup verification failed"
            )
            raise InvalidCodeError()

        try:
            sms.is_verified = True
            sms.updated_at = utc_now()
            self.verifier.stage_attempt(
                principal, MFAMethod.SMS, MFAAttemptKind.SMS_SETUP, success=True
            )
            self.audit.stage(
                action="SMS backup verified",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                compliance_impact=True,
            )
            await self.session.commit()
            await self.session.refresh(sms)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to verify SMS backup", error=str(e))
            raise StorageError() from e

        logger.info("SMS backup verified")
        return sms

    async def _role_requires_mfa(self, principal: Principal) -> bool:
        """True if any team the principal belongs to requires MFA for their role."""
        for membership in await self.member_repo.list_active_memberships(principal.user_id):
            team = await self.team_repo.get_by_id(membership.team_id)
            if team is not None and team.is_active and team.compliance.role_requires_mfa(
                membership.team_role
            ):
                return True
        return False
