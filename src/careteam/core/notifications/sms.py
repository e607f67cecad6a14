"""SMS gateway seam for the optional SMS backup factor."""

from typing import Protocol

from src.careteam.core.logging import get_logger

logger = get_logger(__name__)


class SMSGateway(Protocol):
    async def send_challenge(self, phone_number: str) -> bool:
        """Send a one-time code to `phone_number`. True if dispatched."""
        ...

    async def verify(self, phone_number: str, code: str) -> bool:
        """True if `code` is the outstanding challenge for `phone_number`."""
        ...


class UnconfiguredSMSGateway:
    """Default gateway when no SMS provider is wired in: nothing verifies."""

    async def send_challenge(self, phone_number: str) -> bool:
        logger.warning("SMS gateway not configured - challenge not sent")
        return False

    async def verify(self, phone_number: str, code: str) -> bool:
        return False
