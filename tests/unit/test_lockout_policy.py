"""Tests for the MFA lockout decision."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from src.careteam.models import MFAVerificationAttempt
from src.careteam.services.lockout import LockoutPolicy

pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 1, 12, 0, 0)
USER_ID = uuid4()


@pytest.fixture
def policy() -> LockoutPolicy:
    return LockoutPolicy(
        max_failures=5,
        window=timedelta(minutes=15),
        lockout=timedelta(minutes=30),
    )


def attempts(*history: tuple[bool, int]) -> list[MFAVerificationAttempt]:
    """Attempts newest first, each given as (success, minutes_ago)."""
    return [
        MFAVerificationAttempt(
            user_id=USER_ID,
            method="totp",
            purpose="verify",
            success=success,
            created_at=NOW - timedelta(minutes=minutes_ago),
        )
        for success, minutes_ago in history
    ]


def failures(*minutes_ago: int) -> list[MFAVerificationAttempt]:
    return attempts(*[(False, m) for m in minutes_ago])


class TestEvaluate:
    def test_no_history_unlocked(self, policy):
        assert not policy.evaluate([], NOW).locked

    def test_fewer_than_threshold_unlocked(self, policy):
        assert not policy.evaluate(failures(0, 1, 2, 3), NOW).locked

    def test_threshold_within_window_locks(self, policy):
        state = policy.evaluate(failures(0, 1, 2, 3, 4), NOW)

        assert state.locked
        assert state.locked_until == NOW + timedelta(minutes=30)
        assert 0 < state.retry_after_seconds <= 30 * 60 + 1

    def test_success_breaks_streak(self, policy):
        recent = attempts((False, 0), (False, 1), (True, 2), (False, 3), (False, 4))

        assert not policy.evaluate(recent, NOW).locked

    def test_failures_spread_beyond_window_unlocked(self, policy):
        assert not policy.evaluate(failures(0, 5, 10, 15, 16), NOW).locked

    def test_failures_exactly_spanning_window_lock(self, policy):
        assert policy.evaluate(failures(0, 4, 8, 12, 15), NOW).locked

    def test_lock_lapses_after_lockout(self, policy):
        assert not policy.evaluate(failures(30, 31, 32, 33, 34), NOW).locked

    def test_still_locked_just_before_lapse(self, policy):
        state = policy.evaluate(failures(29, 30, 31, 32, 33), NOW)

        assert state.locked
        assert state.retry_after_seconds == 61

    def test_zero_threshold_disables(self):
        policy = LockoutPolicy(0, timedelta(minutes=15), timedelta(minutes=30))

        assert not policy.evaluate(failures(0, 0, 0), NOW).locked


def test_from_settings():
    settings = MagicMock(
        mfa_max_failed_attempts=3,
        mfa_failure_window_minutes=10,
        mfa_lockout_minutes=20,
    )

    policy = LockoutPolicy.from_settings(settings)

    assert policy.max_failures == 3
    assert policy.window == timedelta(minutes=10)
    assert policy.lockout == timedelta(minutes=20)
