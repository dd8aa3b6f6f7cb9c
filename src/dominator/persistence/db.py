"""Async database engine and session factory.

Provides PostgreSQL async connectivity using SQLAlchemy 2.0 asyncio
extension with asyncpg driver.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dominator.config import Settings, settings

# Module-level engine (initialized lazily)
_engine: AsyncEngine | None = None


def create_engine_from(config: Settings) -> AsyncEngine:
    """Create an async engine for ``config.database_url``.

    The pool is small: a node issues at most a read and an upsert per poll.
    """
    return create_async_engine(
        config.database_url,
        pool_size=config.db_pool_size,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_pre_ping=True,  # Verify connection health
        echo=config.db_echo,
    )


def get_engine() -> AsyncEngine:
    """Get or create the module-level engine from the global settings."""
    global _engine
    if _engine is None:
        _engine = create_engine_from(settings)
    return _engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_context(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Provide a transactional scope around a series of operations.

    Usage:
        async with session_context(factory) as session:
            await session.execute(...)
    """
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_db() -> None:
    """Close database connections."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
