"""
Database engine and session factory.

Engines are built from settings on demand so importing this module never
requires configuration to be present.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from vibesync.config.settings import Settings


def _async_url(database_url: str) -> str:
    """Force the asyncpg driver for plain postgresql:// URLs."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_engine(settings: Settings, use_null_pool: bool = False) -> AsyncEngine:
    """
    Create async engine for the configured database.

    Args:
        settings: Application settings
        use_null_pool: Disable pooling (for short-lived worker tasks)

    Returns:
        AsyncEngine instance
    """
    kwargs: dict = {"echo": settings.database_echo}
    if use_null_pool:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_size"] = 5
        kwargs["max_overflow"] = 5
    return create_async_engine(_async_url(settings.database_url), **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session maker bound to engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
