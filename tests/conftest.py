"""Root test fixtures shared across all test types.

This conftest contains fixtures that can be used by both unit and integration tests.
Database-specific fixtures are in tests/integration/conftest.py.
"""

import os

# Set APP_ENV to testing before any app imports to disable rate limiting
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./careteam-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-that-is-long-enough-0123456789")
os.environ.setdefault("MFA_ENCRYPTION_KEY", "test-mfa-encryption-key-that-is-long-enough-0123")
os.environ.setdefault("RESEND_API_KEY", "")

# ruff: noqa: E402 - Imports must be after env var setup
from uuid import uuid4

import pytest

from src.careteam.core.config import get_settings
from src.careteam.core.request_context import reset_request_context
from src.careteam.core.security import Principal

# Clear settings cache to ensure test environment variables are picked up
get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_request_context():
    """Audit rows read request metadata from a contextvar; never leak it between tests."""
    reset_request_context()
    yield
    reset_request_context()


# --- Principal Fixtures ---


@pytest.fixture
def owner() -> Principal:
    """Principal who provisions and owns the test team."""
    return Principal(user_id=uuid4(), email="owner@example.com")


@pytest.fixture
def alice() -> Principal:
    """Principal the usual test invitation is addressed to."""
    return Principal(user_id=uuid4(), email="alice@example.com")


@pytest.fixture
def mallory() -> Principal:
    """Principal with no membership anywhere."""
    return Principal(user_id=uuid4(), email="mallory@example.com")
