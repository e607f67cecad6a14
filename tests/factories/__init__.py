"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import TeamFactory, TeamInvitationFactory, ...
"""

from tests.factories.base import BaseFactory, generate_uuid, utc_now
from tests.factories.team import TeamFactory, TeamInvitationFactory, TeamMemberFactory

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid",
    "utc_now",
    # Team
    "TeamFactory",
    "TeamInvitationFactory",
    "TeamMemberFactory",
]
