"""Per-request context: audit metadata, log correlation and cache policy."""

from asgi_correlation_id import correlation_id
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.careteam.core.logging import bind_request_context, clear_request_context
from src.careteam.core.request_context import (
    get_client_ip,
    reset_request_context,
    set_request_context,
)

# Responses under these prefixes can carry join tokens, TOTP secrets or backup codes
NO_STORE_PREFIXES = ("/api/v1/mfa", "/api/v1/invitations")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Captures client IP, user agent and request ID for audit and attempt rows.

    The same request ID is bound to the structlog context. Both are cleared
    once the response is produced.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = correlation_id.get()
        clear_request_context()
        bind_request_context(request_id)
        token = set_request_context(
            ip_address=get_client_ip(
                request.headers.get("x-forwarded-for"),
                request.client.host if request.client else None,
            ),
            user_agent=request.headers.get("user-agent"),
            request_id=request_id,
        )
        try:
            response = await call_next(request)
        finally:
            reset_request_context(token)
            clear_request_context()

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response
