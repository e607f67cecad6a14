"""Tests for the invitation expiry sweep activity."""

from datetime import timedelta

import pytest
from temporalio.testing import ActivityEnvironment

from src.careteam.core.db import get_session
from src.careteam.models import TeamInvitation
from src.careteam.models.base import utc_now
from src.careteam.temporal.activities import expire_stale_invitations
from tests.helpers import fetch, invite

pytestmark = pytest.mark.integration


@pytest.fixture
def activity_db(engine, monkeypatch):
    """Point the activity's sessions at the test database."""
    monkeypatch.setattr(
        "src.careteam.temporal.activities.invitations.get_session",
        lambda: get_session(engine),
    )


async def test_sweep_expires_only_lapsed_invitations(
    activity_db, db_session, services, team, owner
):
    lapsed_id, _ = await invite(services, team, owner, email="late@example.com")
    live_id, _ = await invite(services, team, owner, email="live@example.com")
    lapsed = await fetch(db_session, TeamInvitation, lapsed_id)
    lapsed.expires_at = utc_now() - timedelta(hours=1)
    await db_session.commit()

    expired = await ActivityEnvironment().run(expire_stale_invitations)

    assert expired == 1
    assert (await fetch(db_session, TeamInvitation, lapsed_id)).status == "expired"
    assert (await fetch(db_session, TeamInvitation, live_id)).status == "pending"


async def test_sweep_is_idempotent(activity_db, db_session, services, team, owner):
    lapsed_id, _ = await invite(services, team, owner)
    lapsed = await fetch(db_session, TeamInvitation, lapsed_id)
    lapsed.expires_at = utc_now() - timedelta(hours=1)
    await db_session.commit()

    env = ActivityEnvironment()
    assert await env.run(expire_stale_invitations) == 1
    assert await env.run(expire_stale_invitations) == 0


async def test_sweep_leaves_accepted_invitations_alone(
    activity_db, db_session, services, team, owner, alice
):
    invitation_id, token = await invite(services, team, owner)
    await services.invitations.accept_invitation(token, alice)
    accepted = await fetch(db_session, TeamInvitation, invitation_id)
    accepted.expires_at = utc_now() - timedelta(hours=1)
    await db_session.commit()

    assert await ActivityEnvironment().run(expire_stale_invitations) == 0
    assert (await fetch(db_session, TeamInvitation, invitation_id)).status == "accepted"
