"""Alembic environment for the POS schema.

Migrations run on the application's async engine in online mode, or emit
SQL in offline mode.  The database URL comes from ``sqlalchemy.url`` when
the caller sets it (tests point it at a scratch SQLite file) and from
``settings.DATABASE_URL`` otherwise.
"""

import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import pos.models  # noqa: F401  (registers every table on Base.metadata)
from pos.config import settings
from pos.database import Base
from pos.observability import configure_logging

config = context.config

# Callers that already own logging (the test suite) switch this off.
if config.attributes.get("configure_logger", True):
    configure_logging(settings.LOG_LEVEL)

database_url = config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL
target_metadata = Base.metadata


def _configure(**options) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **options,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for *database_url*'s dialect without connecting."""
    _configure(url=database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    # SQLite cannot ALTER constraints in place.
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = create_async_engine(database_url, poolclass=pool.NullPool)
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
