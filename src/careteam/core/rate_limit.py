"""Endpoint rate limiting (slowapi) for token and code submission routes.

These limits sit in front of the MFA lockout policy: lockout is per principal
and persisted, the rate limit is per client IP and cheap.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from src.careteam.core.config import get_settings
from src.careteam.core.logging import get_logger

logger = get_logger(__name__)

# Limits applied to code/token guessing surfaces
TOKEN_SUBMIT_LIMIT = "10/minute"
CODE_SUBMIT_LIMIT = "10/minute"


def get_rate_limit_key(request: Request) -> str:
    """Rate limit by client IP only.

    Never include user-controlled headers in the key; rotating them would
    create unlimited buckets.
    """
    return get_remote_address(request) or "unknown"


def create_limiter() -> Limiter:
    """Create rate limiter with the configured storage backend.

    Disabled in the testing environment.
    """
    settings = get_settings()

    if settings.app_env == "testing":
        logger.info("Rate limiter disabled (testing environment)")
        return Limiter(key_func=get_rate_limit_key, enabled=False)

    if settings.rate_limit_storage_uri:
        logger.info("Rate limiter using shared storage backend")
        return Limiter(key_func=get_rate_limit_key, storage_uri=settings.rate_limit_storage_uri)

    logger.info("Rate limiter using in-memory backend (not distributed)")
    return Limiter(key_func=get_rate_limit_key)


# Reads settings at import time; restart to reconfigure.
limiter = create_limiter()
