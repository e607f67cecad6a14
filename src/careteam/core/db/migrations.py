"""Alembic upgrades for deploys and the worker's --migrate flag."""

import asyncio

from alembic import command
from alembic.config import Config

from src.careteam.core.logging import get_logger

logger = get_logger(__name__)


def upgrade_database(revision: str = "head", config_path: str = "alembic.ini") -> None:
    logger.info("Upgrading database schema", revision=revision)
    command.upgrade(Config(config_path), revision)


async def upgrade_database_async(revision: str = "head") -> None:
    """Run the upgrade on a thread; Alembic's sync engine would block the loop."""
    await asyncio.to_thread(upgrade_database, revision)
