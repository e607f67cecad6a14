"""Engine, sessions and migrations."""

from src.careteam.core.db.engine import dispose_engine, get_engine
from src.careteam.core.db.migrations import upgrade_database, upgrade_database_async
from src.careteam.core.db.session import get_session, make_session_factory

__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session",
    "make_session_factory",
    "upgrade_database",
    "upgrade_database_async",
]
