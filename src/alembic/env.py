"""Alembic environment. Migrations run through a sync driver."""

import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel

from alembic import context
from src.careteam import models  # noqa: F401 - populates SQLModel.metadata
from src.careteam.core.config import get_settings

config = context.config

if config.config_file_name is not None and os.path.exists(config.config_file_name):
    fileConfig(config.config_file_name)


def sync_database_url() -> str:
    """DATABASE_URL with the async driver swapped for the default sync one."""
    url = make_url(get_settings().database_url)
    return url.set(drivername=url.get_backend_name()).render_as_string(hide_password=False)


def run_offline() -> None:
    context.configure(
        url=sync_database_url(),
        target_metadata=SQLModel.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = sync_database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=SQLModel.metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
