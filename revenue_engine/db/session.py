"""Database session management with async SQLAlchemy."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from revenue_engine.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine with production pool settings.

    SQLite URLs skip the pool sizing arguments, which its pools do not accept.
    """
    options: dict[str, Any] = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=30,
            pool_recycle=1800,  # Recycle every 30 min
            pool_timeout=30,
            pool_use_lifo=True,  # Keeps hot connections in use
        )
    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory for the given engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(str(settings.DATABASE_URL))

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Database session error")
            raise
        finally:
            await session.close()
