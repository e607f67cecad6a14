"""Integration test fixtures for database and HTTP client operations.

Tests run against a throwaway SQLite file per test. Each transaction opens
with BEGIN IMMEDIATE, so concurrent sessions serialize on the write lock the
way conditional UPDATEs serialize on row locks in PostgreSQL.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from src.careteam import models  # noqa: F401 - registers every table on the metadata
from src.careteam.api.dependencies import (
    get_db_session,
    get_invitation_notifier,
    get_sms_gateway,
)
from src.careteam.core.db import make_session_factory
from src.careteam.core.security import Principal
from src.careteam.main import create_app
from src.careteam.models import Team
from tests.helpers import FakeNotifier, FakeSMSGateway, Services, build_services


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def sms_gateway() -> FakeSMSGateway:
    return FakeSMSGateway()


@pytest.fixture(scope="function")
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create a fresh SQLite database with every table."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'careteam.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Provide an async session for database operations.

    Configured like the application's sessions (no autoflush, no expiry on
    commit). A rollback inside a service still expires every instance the
    session holds, so tests re-read rows with tests.helpers.fetch afterwards.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def services(
    db_session: AsyncSession, notifier: FakeNotifier, sms_gateway: FakeSMSGateway
) -> Services:
    return build_services(db_session, notifier, sms_gateway)


@pytest.fixture
async def team(db_session: AsyncSession, services: Services, owner: Principal) -> Team:
    """A provisioned team owned by `owner`, detached so rollbacks never expire it."""
    provisioned = await services.teams.provision_team(
        owner,
        "Harbour Street Care Team",
        practice_name="Harbour Street Clinic",
        max_team_size=5,
    )
    db_session.expunge(provisioned)
    return provisioned


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: FakeNotifier,
    sms_gateway: FakeSMSGateway,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app, with a session per request on the test database."""

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_invitation_notifier] = lambda: notifier
    app.dependency_overrides[get_sms_gateway] = lambda: sms_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
