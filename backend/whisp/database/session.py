"""
Async engine and session management.

The store never relies on multi-statement transactions: every operation
opens a short session, runs one statement and commits.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from whisp.database.base import Base

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            connect_args={"timeout": 30},
        )

    return create_async_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Build the session factory used by every store."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Register models on the metadata before create_all
    import whisp.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def close_db(engine: Optional[AsyncEngine]) -> None:
    """Dispose the engine and its connection pool."""
    if engine is not None:
        await engine.dispose()


async def check_db_connection(session_factory: Optional[SessionFactory]) -> bool:
    """Check if the database answers a trivial query."""
    if session_factory is None:
        return False

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False


@asynccontextmanager
async def get_db_session(session_factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for one short-lived session.

    Usage:
        async with get_db_session(factory) as db:
            await db.execute(update(Bet).where(...).values(...))
            await db.commit()
    """
    session = session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
