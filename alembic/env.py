"""
Alembic Environment for Careerlyst Billing

Runs migrations through the async engine against the same URL the app
uses. Autogenerate only compares tables this service owns: Supabase's
own schemas, tables other services created, and the mapped-but-external
``portfolios``/``companies`` tables are left alone.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from alembic import context

from careerlyst.infrastructure.db.database import resolve_database_url

# Registers every table on SQLModel.metadata
from careerlyst.infrastructure.db import models  # noqa: F401


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata

# Mapped for reads/updates, migrated by the features that own them
EXTERNAL_TABLES = {"portfolios", "companies"}


def include_object(object, name, type_, reflected, compare_to):
    """Limit autogenerate to tables declared in our models."""
    if type_ != "table":
        return True
    if name in EXTERNAL_TABLES:
        return False
    # Reflected with no model counterpart: someone else's table, never drop it
    if reflected and compare_to is None:
        return False
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    _configure(
        url=resolve_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    _configure(connection=connection, compare_server_default=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations over a throwaway async engine."""
    engine = create_async_engine(resolve_database_url(), poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
