"""Repositories for MFA credentials, backup codes, SMS backup and attempts."""

from datetime import datetime
from typing import Any, cast
from uuid import UUID

from sqlalchemy import delete, func, update
from sqlalchemy.engine import CursorResult
from sqlmodel import select

from src.careteam.models import MFABackupCode, MFACredential, MFAVerificationAttempt, SMSBackup
from src.careteam.models.base import utc_now
from src.careteam.repositories.base import BaseRepository


class MFACredentialRepository(BaseRepository[MFACredential]):
    model = MFACredential

    async def get_by_id(self, id: UUID) -> MFACredential | None:
        return await self.get_for_user(id)

    async def get_for_user(self, user_id: UUID) -> MFACredential | None:
        result = await self.session.execute(
            select(MFACredential).where(MFACredential.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def touch_last_used(self, user_id: UUID, now: datetime) -> None:
        await self.session.execute(
            update(MFACredential)
            .where(MFACredential.user_id == user_id)  # type: ignore[arg-type]
            .values(last_used_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )


class BackupCodeRepository(BaseRepository[MFABackupCode]):
    model = MFABackupCode

    async def replace_all(self, user_id: UUID, code_hashes: list[str]) -> None:
        """Drop every existing code for the principal and store the new set."""
        await self.delete_all(user_id)
        now = utc_now()
        for code_hash in code_hashes:
            self.add(MFABackupCode(user_id=user_id, code_hash=code_hash, created_at=now))
        await self.session.flush()

    async def delete_all(self, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(MFABackupCode).where(MFABackupCode.user_id == user_id)  # type: ignore[arg-type]
        )
        return cast(CursorResult[Any], result).rowcount or 0

    async def consume(self, user_id: UUID, code_hash: str) -> bool:
        """Atomically remove the code if present. True only for the one caller that removed it."""
        result = await self.session.execute(
            delete(MFABackupCode).where(
                MFABackupCode.user_id == user_id,  # type: ignore[arg-type]
                MFABackupCode.code_hash == code_hash,  # type: ignore[arg-type]
            )
        )
        return (cast(CursorResult[Any], result).rowcount or 0) > 0

    async def count_remaining(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(MFABackupCode).where(MFABackupCode.user_id == user_id)
        )
        return int(result.scalar_one())


class SMSBackupRepository(BaseRepository[SMSBackup]):
    model = SMSBackup

    async def get_for_user(self, user_id: UUID) -> SMSBackup | None:
        result = await self.session.execute(select(SMSBackup).where(SMSBackup.user_id == user_id))
        return result.scalar_one_or_none()

    async def delete_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(SMSBackup).where(SMSBackup.user_id == user_id)  # type: ignore[arg-type]
        )
        return cast(CursorResult[Any], result).rowcount or 0


class VerificationAttemptRepository(BaseRepository[MFAVerificationAttempt]):
    model = MFAVerificationAttempt

    async def recent(self, user_id: UUID, limit: int) -> list[MFAVerificationAttempt]:
        """Most recent attempts for the principal, newest first."""
        result = await self.session.execute(
            select(MFAVerificationAttempt)
            .where(MFAVerificationAttempt.user_id == user_id)
            .order_by(MFAVerificationAttempt.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())
