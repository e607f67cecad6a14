"""Notification collaborators - invitation email and SMS."""

from src.careteam.core.notifications.email import (
    InvitationEmail,
    InvitationNotifier,
    ResendInvitationNotifier,
    build_join_url,
    render_invitation_html,
)
from src.careteam.core.notifications.sms import SMSGateway, UnconfiguredSMSGateway

__all__ = [
    "InvitationEmail",
    "InvitationNotifier",
    "ResendInvitationNotifier",
    "SMSGateway",
    "UnconfiguredSMSGateway",
    "build_join_url",
    "render_invitation_html",
]
