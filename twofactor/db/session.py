"""Database session management and engine configuration."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from twofactor.core.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
    # SQLite pools do not accept sizing arguments
    if not settings.is_sqlite:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return options


# Async engine for FastAPI
async_engine = create_async_engine(settings.DATABASE_URL, **_engine_options())

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    The enrollment repository commits at the end of each locked operation;
    anything left uncommitted is rolled back here.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
