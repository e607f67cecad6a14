"""Per-IP limits in front of the invitation and MFA code endpoints."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request

from src.careteam.core.rate_limit import create_limiter, get_rate_limit_key

pytestmark = pytest.mark.unit


@pytest.fixture
def verify_request() -> MagicMock:
    request = MagicMock(spec=Request)
    request.headers = {}
    request.client = SimpleNamespace(host="192.168.1.100")
    request.url.path = "/api/v1/mfa/verify"
    return request


@pytest.mark.parametrize(
    ("remote", "expected"),
    [("192.168.1.100", "192.168.1.100"), (None, "unknown")],
)
def test_key_is_remote_address(verify_request, remote, expected):
    with patch("src.careteam.core.rate_limit.get_remote_address", return_value=remote):
        assert get_rate_limit_key(verify_request) == expected


def test_forwarded_for_cannot_open_new_buckets(verify_request):
    verify_request.headers = {"X-Forwarded-For": "1.2.3.4"}

    with patch("src.careteam.core.rate_limit.get_remote_address", return_value="10.0.0.1"):
        assert get_rate_limit_key(verify_request) == "10.0.0.1"


@pytest.mark.parametrize(
    ("app_env", "storage_uri", "enabled"),
    [
        ("testing", None, False),
        ("development", None, True),
        ("production", "memory://", True),
    ],
)
def test_limiter_per_environment(app_env, storage_uri, enabled):
    settings = SimpleNamespace(app_env=app_env, rate_limit_storage_uri=storage_uri)

    with patch("src.careteam.core.rate_limit.get_settings", return_value=settings):
        assert create_limiter().enabled is enabled
