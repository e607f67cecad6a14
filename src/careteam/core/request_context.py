"""Per-request metadata (client IP, user agent, correlation ID) for audit rows.

Set by the request context middleware and read by AuditService and the MFA
attempt log, so services never need the Request object.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass

MAX_USER_AGENT_LENGTH = 500

_request_context: ContextVar["RequestContext | None"] = ContextVar(
    "careteam_request_context", default=None
)


@dataclass(frozen=True)
class RequestContext:
    ip_address: str | None = None
    user_agent: str | None = None
    request_id: str | None = None


def set_request_context(
    ip_address: str | None = None,
    user_agent: str | None = None,
    request_id: str | None = None,
) -> Token["RequestContext | None"]:
    """Store request metadata for the current task. Returns a reset token."""
    ctx = RequestContext(
        ip_address=ip_address,
        user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        request_id=request_id,
    )
    return _request_context.set(ctx)


def get_request_context() -> RequestContext | None:
    return _request_context.get()


def reset_request_context(token: Token["RequestContext | None"] | None = None) -> None:
    if token is not None:
        _request_context.reset(token)
    else:
        _request_context.set(None)


def get_client_ip(forwarded_for: str | None, client_host: str | None) -> str | None:
    """Extract client IP from X-Forwarded-For header or client host.

    The first address in X-Forwarded-For is the original client.
    """
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return client_host
