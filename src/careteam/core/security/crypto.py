"""Invitation tokens and bearer JWTs."""

import secrets
from datetime import UTC, datetime, timedelta
from hashlib import sha256
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from src.careteam.core.config import get_settings
from src.careteam.core.security.principal import Principal

INVITATION_TOKEN_BYTES = 32
ACCESS_TOKEN_TYPE = "access"


class InvalidAccessTokenError(Exception):
    """Bearer token is unusable. The message is safe to return to the caller."""


def generate_invitation_token() -> str:
    """256 bits from the OS CSPRNG, URL-safe. Only its hash is ever stored."""
    return secrets.token_urlsafe(INVITATION_TOKEN_BYTES)


def hash_token(token: str) -> str:
    return sha256(token.encode()).hexdigest()


def create_access_token(
    subject: str | UUID,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a bearer token the way the identity provider does (used by tests and tooling)."""
    settings = get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(subject),
        "email": email,
        "exp": datetime.now(UTC) + lifetime,
        "type": ACCESS_TOKEN_TYPE,
    }
    return jwt.encode(  # type: ignore[no-any-return]
        claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Verified claims, or None when the signature or expiry check fails."""
    settings = get_settings()
    try:
        return jwt.decode(  # type: ignore[no-any-return]
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None


def principal_from_token(token: str) -> Principal:
    """Turn a verified access token into the caller's identity.

    Raises:
        InvalidAccessTokenError: Bad signature, expired, wrong type or missing claims.
    """
    claims = decode_token(token)
    if claims is None:
        raise InvalidAccessTokenError("Invalid or expired token")
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidAccessTokenError("Invalid token type")

    subject, email = claims.get("sub"), claims.get("email")
    if not subject or not email:
        raise InvalidAccessTokenError("Invalid token payload")
    try:
        user_id = UUID(subject)
    except ValueError as e:
        raise InvalidAccessTokenError("Invalid subject in token") from e
    return Principal(user_id=user_id, email=email)
