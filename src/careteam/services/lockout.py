"""MFA lockout policy: N consecutive failures within W lock for L."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.careteam.core.config import Settings, get_settings
from src.careteam.models import MFAVerificationAttempt


@dataclass(frozen=True)
class LockoutState:
    locked: bool
    retry_after_seconds: int | None = None
    locked_until: datetime | None = None


UNLOCKED = LockoutState(locked=False)


@dataclass(frozen=True)
class LockoutPolicy:
    max_failures: int
    window: timedelta
    lockout: timedelta

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LockoutPolicy":
        settings = settings or get_settings()
        return cls(
            max_failures=settings.mfa_max_failed_attempts,
            window=timedelta(minutes=settings.mfa_failure_window_minutes),
            lockout=timedelta(minutes=settings.mfa_lockout_minutes),
        )

    def evaluate(self, recent: Sequence[MFAVerificationAttempt], now: datetime) -> LockoutState:
        """Decide from the most recent attempts (newest first).

        Locked when the last `max_failures` attempts all failed, the oldest of
        them falls inside `window`, and `lockout` has not yet elapsed since
        the newest. Any success among them breaks the streak.
        """
        if self.max_failures <= 0 or len(recent) < self.max_failures:
            return UNLOCKED

        streak = list(recent[: self.max_failures])
        if any(attempt.success for attempt in streak):
            return UNLOCKED

        newest, oldest = streak[0].created_at, streak[-1].created_at
        if newest - oldest > self.window:
            return UNLOCKED

        locked_until = newest + self.lockout
        if now >= locked_until:
            return UNLOCKED

        remaining = int((locked_until - now).total_seconds()) + 1
        return LockoutState(locked=True, retry_after_seconds=remaining, locked_until=locked_until)
