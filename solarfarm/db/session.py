"""
Async database engine and session factory.

Uses the SQLAlchemy 2.x async engine; asyncpg for PostgreSQL in production
and aiosqlite for local development and tests. The URL comes from
FarmSettings rather than being read here so tests can point at a temporary
SQLite file.

CHANGELOG:
- 2026-09-30: Resolve the migration URL through FarmSettings (STORY-020)
- 2026-09-17: Initial creation (STORY-005)
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from solarfarm.config import FarmSettings
from solarfarm.db.models import Base


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Async SQLAlchemy URL (``postgresql+asyncpg://`` or
            ``sqlite+aiosqlite://``).

    Returns:
        AsyncEngine: Configured async engine. Connections are checked on
        checkout so a restarted database does not hand out dead connections.
    """
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to ``engine``.

    Args:
        engine: The async engine sessions should use.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing tables. Existing tables are left untouched.

    Args:
        engine: The async engine to create tables on.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def migration_url(settings: FarmSettings | None = None) -> str:
    """Return the database URL Alembic migrations should run against.

    Raises:
        RuntimeError: If no DATABASE_URL is configured. Memory-only mode has
            nothing to migrate.
    """
    settings = settings or FarmSettings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    return settings.database_url
