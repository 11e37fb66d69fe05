"""
Database Configuration for Careerlyst Billing

Async SQLAlchemy engine and session management against the Supabase
Postgres instance. Sessions commit on clean exit and roll back on error,
so every repository call is all-or-nothing.
"""

import re
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import quote_plus

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy import text

from careerlyst.config.settings import settings
from careerlyst.infrastructure.exceptions import ConfigurationError


def resolve_database_url() -> str:
    """
    PostgreSQL (asyncpg) URL for SQLAlchemy.

    Uses DATABASE_URL if set, otherwise derives the direct connection from
    SUPABASE_URL + SUPABASE_PASSWORD.
    """
    if settings.database_url:
        database_url = settings.database_url
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return database_url

    if not settings.supabase_url or not settings.supabase_password:
        raise ConfigurationError(
            "Either DATABASE_URL or (SUPABASE_URL + SUPABASE_PASSWORD) is required",
            missing_keys=["DATABASE_URL", "SUPABASE_PASSWORD"],
        )

    # https://[project-ref].supabase.co -> db.[project-ref].supabase.co
    match = re.match(r'https?://([^.]+)\.supabase\.co', settings.supabase_url)
    if not match:
        raise ConfigurationError(f"Invalid SUPABASE_URL format: {settings.supabase_url}")

    project_ref = match.group(1)
    password = quote_plus(settings.supabase_password)

    return (
        f"postgresql+asyncpg://postgres:{password}"
        f"@db.{project_ref}.supabase.co:5432/postgres"
    )

def _connect_args(database_url: str) -> dict:
    # Supabase's transaction pooler (port 6543) cannot keep prepared statements
    if ":6543/" in database_url:
        return {"statement_cache_size": 0}
    return {}


class DatabaseManager:
    """
    Owns the async engine and session factory.

    Created lazily on first use so importing the app never opens a
    connection; reservations and upserts each run in their own short
    transaction, so the pool stays small.
    """

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            url = self._database_url or resolve_database_url()
            self._engine = create_async_engine(
                url,
                echo=settings.database_echo,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
                pool_pre_ping=True,
                connect_args=_connect_args(url),
            )
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get or create the database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    One transaction: commit on clean exit, roll back if the block raised.

    Usage:
        async with get_session_context() as session:
            await session.execute(statement)
    """
    async with get_db_manager().session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_session_context() as session:
        yield session


async def init_db() -> None:
    """Check connectivity on startup."""
    async with get_session_context() as session:
        await session.execute(text("SELECT 1"))


async def close_db() -> None:
    """Close the connection pool on shutdown."""
    await get_db_manager().close()
