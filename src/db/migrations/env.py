"""Alembic environment for the department tree schema.

The migrations are hand-written ``op`` calls with no SQLAlchemy metadata, so
autogenerate is not supported. The URL comes from ``PoolConfig`` so migrations
and the runtime pool agree on which database they target.
"""

from __future__ import annotations

from logging.config import fileConfig

import structlog
from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

from src.config.db_settings import PoolConfig

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

LOGGER = structlog.get_logger(__name__)


def _sqlalchemy_url() -> str:
    load_dotenv(override=False)
    try:
        dsn = PoolConfig.model_validate({}).dsn
    except ValueError as exc:
        raise RuntimeError(f"DATABASE_URL must be set to run database migrations: {exc}") from exc
    # SQLAlchemy only registers the long dialect name.
    if dsn.startswith("postgres://"):
        dsn = "postgresql://" + dsn[len("postgres://") :]
    return dsn


def run_migrations_offline() -> None:
    context.configure(url=_sqlalchemy_url(), target_metadata=None, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()
    LOGGER.info("alembic.migrations.run", mode="offline")


def run_migrations_online() -> None:
    engine = create_engine(_sqlalchemy_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=None)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()
    LOGGER.info("alembic.migrations.run", mode="online")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
