"""Structured logging (structlog) with secret redaction.

Invitation tokens, verification codes and TOTP secrets pass through the
services as plain strings. The redaction processor keeps them out of log
output even if a call site passes one by mistake.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any
from uuid import UUID

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from src.careteam.core.config import get_settings

REDACTED = "[redacted]"

# Event keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "backup_code",
        "backup_codes",
        "code",
        "phone_number",
        "provisioning_uri",
        "secret",
        "token",
        "totp_secret",
    }
)

_NOISY_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "temporalio": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "multipart": logging.WARNING,
}


def redact_sensitive(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace values of sensitive keys, however the event was built."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def service_stamper(service: str) -> structlog.typing.Processor:
    def add_service(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def setup_logging(debug: bool = False, service: str = "careteam-api") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        debug: Colored console output instead of JSON lines.
        service: Stamped on every event so API and worker logs can share a sink.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive,
        service_stamper(service),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    processors.append(
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str | None) -> None:
    """Attach the correlation ID to every event for the rest of the request."""
    if request_id:
        bind_contextvars(request_id=request_id)


def bind_user_context(user_id: UUID, email: str | None = None) -> None:
    """Attach the authenticated principal.

    The email is included only when LOG_USER_EMAILS is enabled; otherwise
    the opaque user_id is the only identifier logged.
    """
    bind_contextvars(user_id=str(user_id))
    if email and get_settings().log_user_emails:
        bind_contextvars(user_email=email)


def bind_team_context(team_id: UUID) -> None:
    bind_contextvars(team_id=str(team_id))


def clear_request_context() -> None:
    clear_contextvars()
