"""Async database engine and session management.

Uses SQLAlchemy 2.0 async with asyncpg driver (aiosqlite for local runs and tests).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from searchlog.config import settings

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> AsyncEngine:
    """Build an async engine with pool options suited to the backend."""
    if database_url.startswith("sqlite"):
        # A single shared connection keeps an in-memory database alive across sessions
        return create_async_engine(database_url, echo=False, poolclass=StaticPool)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = make_engine(settings.database_url)

async_session_factory = make_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> bool:
    """Create tables if they don't exist. Returns True on success."""
    from searchlog.models import Base  # noqa: F811

    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.warning("Database unavailable, search logging disabled: %s", str(e)[:200])
        return False


async def close_db(bind: AsyncEngine | None = None):
    """Dispose engine connections on shutdown."""
    await (bind or engine).dispose()
    logger.info("Database connections closed")
