"""MFA verification - factor checks, attempt history and lockout."""

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.careteam.core.config import Settings, get_settings
from src.careteam.core.exceptions import InvalidCodeError, LockedOutError, StorageError
from src.careteam.core.logging import get_logger
from src.careteam.core.notifications import SMSGateway, UnconfiguredSMSGateway
from src.careteam.core.request_context import get_request_context
from src.careteam.core.security import (
    Principal,
    decrypt_secret,
    hash_backup_code,
    verify_totp,
)
from src.careteam.models import (
    AuditActionType,
    AuditStatus,
    MFAAttemptKind,
    MFACredential,
    MFAMethod,
    MFAVerificationAttempt,
)
from src.careteam.models.base import utc_now
from src.careteam.repositories import (
    BackupCodeRepository,
    MFACredentialRepository,
    SMSBackupRepository,
    VerificationAttemptRepository,
)
from src.careteam.services.audit_service import AuditService
from src.careteam.services.lockout import LockoutPolicy, LockoutState

logger = get_logger(__name__)


class MFAVerificationService:
    """Verifies second factors for an already authenticated principal.

    Every check, whatever its purpose, goes through the same lockout gate
    and leaves an attempt row plus an audit entry behind.
    """

    def __init__(
        self,
        credential_repo: MFACredentialRepository,
        backup_code_repo: BackupCodeRepository,
        sms_repo: SMSBackupRepository,
        attempt_repo: VerificationAttemptRepository,
        audit_service: AuditService,
        session: AsyncSession,
        sms_gateway: SMSGateway | None = None,
        lockout_policy: LockoutPolicy | None = None,
        settings: Settings | None = None,
    ):
        self.credential_repo = credential_repo
        self.backup_code_repo = backup_code_repo
        self.sms_repo = sms_repo
        self.attempt_repo = attempt_repo
        self.audit = audit_service
        self.session = session
        self.sms_gateway = sms_gateway or UnconfiguredSMSGateway()
        self.settings = settings or get_settings()
        self.lockout_policy = lockout_policy or LockoutPolicy.from_settings(self.settings)

    async def lockout_state(self, user_id: UUID) -> LockoutState:
        recent = await self.attempt_repo.recent(user_id, self.lockout_policy.max_failures)
        return self.lockout_policy.evaluate(recent, utc_now())

    async def is_locked(self, user_id: UUID) -> bool:
        return (await self.lockout_state(user_id)).locked

    async def ensure_not_locked(self, principal: Principal, purpose: MFAAttemptKind) -> None:
        """Raise LockedOutError (and audit the refusal) while locked out.

        Must run before any factor is checked, so a locked principal learns
        nothing about whether a code would have been correct.
        """
        state = await self.lockout_state(principal.user_id)
        if not state.locked:
            return

        logger.warning(
            "MFA attempt refused during lockout",
            purpose=purpose.value,
            retry_after_seconds=state.retry_after_seconds,
        )
        await self.audit.log_failure(
            action="MFA attempt blocked by lockout",
            action_type=AuditActionType.SECURITY,
            performed_by=principal.user_id,
            error_message="locked out",
            details={
                "purpose": purpose.value,
                "locked_until": state.locked_until.isoformat() if state.locked_until else None,
            },
        )
        raise LockedOutError(retry_after_seconds=state.retry_after_seconds)

    async def check_factor(
        self,
        principal: Principal,
        credential: MFACredential,
        code: str,
        method: MFAMethod,
    ) -> bool:
        """Check one factor without recording anything.

        A matching backup code is deleted in the caller's transaction; it is
        spent once that transaction commits.
        """
        if not code:
            return False

        if method == MFAMethod.TOTP:
            if not credential.totp_secret_encrypted:
                return False
            secret = decrypt_secret(
                credential.totp_secret_encrypted, self.settings.mfa_encryption_key
            )
            return verify_totp(secret, code, self.settings.totp_valid_window)

        if method == MFAMethod.BACKUP_CODES:
            return await self.backup_code_repo.consume(principal.user_id, hash_backup_code(code))

        if method == MFAMethod.SMS:
            sms = await self.sms_repo.get_for_user(principal.user_id)
            if sms is None or not sms.is_verified:
                return False
            return await self.sms_gateway.verify(sms.e164, code.strip())

        return False

    def stage_attempt(
        self,
        principal: Principal,
        method: MFAMethod,
        purpose: MFAAttemptKind,
        success: bool,
    ) -> MFAVerificationAttempt:
        ctx = get_request_context()
        attempt = MFAVerificationAttempt(
            user_id=principal.user_id,
            method=method.value,
            purpose=purpose.value,
            success=success,
            ip_address=ctx.ip_address if ctx else None,
            user_agent=ctx.user_agent if ctx else None,
            created_at=utc_now(),
        )
        self.attempt_repo.add(attempt)
        return attempt

    async def record_failure(
        self,
        principal: Principal,
        method: MFAMethod,
        purpose: MFAAttemptKind,
        action: str,
    ) -> None:
        """Persist a failed attempt and its audit entry.

        Anything else pending on the session is discarded first, so a failed
        check never half-applies. A storage error here is logged, not raised:
        the caller is about to report the invalid code anyway.
        """
        await self.session.rollback()
        self.stage_attempt(principal, method, purpose, success=False)
        self.audit.stage(
            action=action,
            action_type=AuditActionType.SECURITY,
            performed_by=principal.user_id,
            details={"method": method.value, "purpose": purpose.value},
            status=AuditStatus.FAILURE,
            error_message="Invalid verification code",
        )
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to record MFA attempt", purpose=purpose.value, error=str(e))

        logger.warning("MFA verification failed", method=method.value, purpose=purpose.value)

    async def verify(
        self,
        principal: Principal,
        code: str,
        method: MFAMethod | str = MFAMethod.TOTP,
    ) -> MFAMethod:
        """Verify a second factor for an enabled principal.

        Returns:
            The method that succeeded.

        Raises:
            LockedOutError: Too many recent failures; nothing was checked.
            InvalidCodeError: Wrong code, unknown method or MFA not enabled.
        """
        await self.ensure_not_locked(principal, MFAAttemptKind.VERIFY)

        if method not in {m.value for m in MFAMethod}:
            await self.record_failure(
                principal, MFAMethod.TOTP, MFAAttemptKind.VERIFY, "MFA verification failed"
            )
            raise InvalidCodeError()
        method = MFAMethod(method)

        credential = await self.credential_repo.get_for_user(principal.user_id)
        if credential is None or not credential.is_enabled:
            await self.record_failure(
                principal, method, MFAAttemptKind.VERIFY, "MFA verification failed"
            )
            raise InvalidCodeError()

        if not await self.check_factor(principal, credential, code, method):
            await self.record_failure(
                principal, method, MFAAttemptKind.VERIFY, "MFA verification failed"
            )
            raise InvalidCodeError()

        now = utc_now()
        try:
            await self.credential_repo.touch_last_used(principal.user_id, now)
            self.stage_attempt(principal, method, MFAAttemptKind.VERIFY, success=True)
            self.audit.stage(
                action="MFA verification succeeded",
                action_type=AuditActionType.SECURITY,
                performed_by=principal.user_id,
                details={"method": method.value},
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to record MFA verification", error=str(e))
            raise StorageError() from e

        logger.info("MFA verification succeeded", method=method.value)
        return method
