"""Database configuration and connection management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings


def to_async_url(url: str) -> str:
    """Convert a sync PostgreSQL URL to its asyncpg form."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def engine_options(url: str) -> dict[str, Any]:
    """Pool and driver options for the async engine."""
    if url.startswith("sqlite"):
        return {"echo": settings.debug}

    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    }


DATABASE_URL = to_async_url(settings.database_url)

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
