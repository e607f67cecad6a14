"""Bearer authentication.

Principals are authenticated by the identity provider. This service only
verifies the JWT it issued and reads the caller's identity from it.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.careteam.core.logging import bind_user_context
from src.careteam.core.security import (
    InvalidAccessTokenError,
    Principal,
    principal_from_token,
)

_BEARER_PREFIX = "Bearer "


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise _unauthorized("Missing or invalid authorization header")
    try:
        principal = principal_from_token(authorization.removeprefix(_BEARER_PREFIX))
    except InvalidAccessTokenError as e:
        raise _unauthorized(str(e)) from e

    bind_user_context(principal.user_id, principal.email)
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
