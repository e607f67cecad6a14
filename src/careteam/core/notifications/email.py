"""Invitation emails via the Resend API."""

import asyncio
import html
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import resend

from src.careteam.core.config import Settings, get_settings
from src.careteam.core.exceptions import NotificationError
from src.careteam.core.logging import get_logger

logger = get_logger(__name__)

# Resend's client is synchronous; sends run here with a timeout
_email_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="email_sender")

_BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
    "line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
)
_BUTTON_STYLE = (
    "background-color: #0f766e; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block; font-weight: 500;"
)
_LINK_STYLE = "color: #0f766e; word-break: break-all;"
_MUTED_STYLE = "color: #666; font-size: 14px;"


@dataclass(frozen=True)
class InvitationEmail:
    """Everything the invitation template needs."""

    to: str
    invited_name: str
    team_name: str
    practice_name: str | None
    inviter_name: str
    role: str
    join_url: str
    expires_at: datetime
    personal_message: str | None = None


class InvitationNotifier(Protocol):
    async def send_invitation(self, email: InvitationEmail) -> None:
        """Deliver the invitation. Raises NotificationError on failure."""
        ...


def build_join_url(token: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    return f"{settings.app_url.rstrip('/')}/team/join/{token}"


class ResendInvitationNotifier:
    """Sends invitation emails through Resend, bounded by a timeout."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def send_invitation(self, email: InvitationEmail) -> None:
        settings = self.settings

        if not settings.resend_api_key:
            # Dev mode: nothing to send through
            logger.warning(
                "RESEND_API_KEY not set - invitation email not sent",
                email_type="team_invitation",
            )
            return

        resend.api_key = settings.resend_api_key
        subject = f"You've been invited to join {email.team_name}"
        payload = {
            "from": settings.email_from,
            "to": [email.to],
            "subject": subject,
            "html": render_invitation_html(email),
        }

        future = _email_executor.submit(resend.Emails.send, payload)
        try:
            await asyncio.wait_for(
                asyncio.wrap_future(future),
                timeout=settings.email_send_timeout_seconds,
            )
        except TimeoutError as e:
            raise NotificationError(
                f"Email send timed out after {settings.email_send_timeout_seconds}s"
            ) from e
        except Exception as e:
            raise NotificationError(f"Email provider error: {e}") from e

        logger.info("Invitation email sent", email_type="team_invitation")


def render_invitation_html(email: InvitationEmail) -> str:
    """Generate HTML content for the invitation email."""
    safe_name = html.escape(email.invited_name)
    safe_team = html.escape(email.team_name)
    safe_inviter = html.escape(email.inviter_name)
    safe_role = html.escape(email.role.replace("_", " "))
    practice_line = ""
    if email.practice_name:
        practice_line = f" at <strong>{html.escape(email.practice_name)}</strong>"
    message_block = ""
    if email.personal_message:
        message_block = (
            f'<blockquote style="{_MUTED_STYLE} border-left: 3px solid #ccc; '
            f'padding-left: 12px;">{html.escape(email.personal_message)}</blockquote>'
        )
    join_url = html.escape(email.join_url, quote=True)
    expires = email.expires_at.strftime("%d %B %Y")

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="{_BODY_STYLE}">
    <h1 style="color: #0f766e; margin-bottom: 24px;">Join {safe_team}</h1>
    <p>Hi {safe_name},</p>
    <p>{safe_inviter} has invited you to join the care team{practice_line}
    as <strong>{safe_role}</strong>.</p>
    {message_block}
    <p style="margin: 32px 0;">
        <a href="{join_url}" style="{_BUTTON_STYLE}">Accept Invitation</a>
    </p>
    <p style="{_MUTED_STYLE}">
        Or copy and paste this link into your browser:<br>
        <a href="{join_url}" style="{_LINK_STYLE}">{join_url}</a>
    </p>
    <p style="{_MUTED_STYLE} margin-top: 32px;">
        This invitation expires on {expires}. If you weren't expecting it,
        you can safely ignore this email.
    </p>
</body>
</html>"""
