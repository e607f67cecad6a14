"""Session construction shared by the API, the worker and tests."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.careteam.core.db.engine import get_engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Services commit explicitly and keep using returned rows afterwards
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_session(engine: AsyncEngine | None = None) -> AsyncGenerator[AsyncSession]:
    """Open a session on `engine`, or on the process engine when omitted.

    Transaction boundaries belong to the services; this only guarantees close.
    """
    async with make_session_factory(engine or get_engine())() as session:
        yield session
