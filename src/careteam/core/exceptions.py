"""Domain errors and the exception handlers that render them with request_id."""

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.careteam.core.logging import get_logger

logger = get_logger(__name__)


class CareTeamError(Exception):
    """Base class for errors raised by the service layer.

    Each subclass carries the HTTP status it maps to, so routes can let
    these propagate and a single handler renders them.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request could not be completed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(CareTeamError):
    """Malformed input, rejected before anything is persisted."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid input"


class ConfigurationError(CareTeamError):
    """Required server-side state or configuration is missing."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Service is not configured for this operation"


class NotFoundError(CareTeamError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class PermissionDeniedError(CareTeamError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class ConflictError(CareTeamError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicts with the current state"


class InvalidStateError(CareTeamError):
    """Operation is not allowed in the entity's current lifecycle state."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed in the current state"


class InvalidOrExpiredInvitationError(CareTeamError):
    """Unknown token, non-pending invitation or past expiry.

    The cases are deliberately indistinguishable to the caller.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired invitation"

    def __init__(self) -> None:
        super().__init__()


class InvalidCodeError(CareTeamError):
    """Wrong TOTP, backup or SMS code. The message never says why."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid verification code"

    def __init__(self) -> None:
        super().__init__()


class LockedOutError(CareTeamError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many failed verification attempts. Try again later."

    def __init__(self, retry_after_seconds: int | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__()


class StorageError(CareTeamError):
    """Persistence failed; the operation was not applied."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage is temporarily unavailable, please retry"


class NotificationError(CareTeamError):
    """Notification dispatch failed. Logged, never surfaced to callers."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Notification could not be sent"


def error_response(
    status_code: int, detail: object, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Every error body has the same shape: detail plus the correlation ID."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": correlation_id.get()},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CareTeamError)
    async def care_team_error_handler(request: Request, exc: CareTeamError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                error_type=type(exc).__name__,
                error=exc.message,
                path=request.url.path,
            )
        headers = None
        if isinstance(exc, LockedOutError) and exc.retry_after_seconds:
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return error_response(exc.status_code, exc.message, headers)

    # Also catches fastapi.HTTPException, which subclasses it
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, exc.detail, exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
