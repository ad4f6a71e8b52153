"""
SQLAlchemy database access module.

This module creates the async engine and session factory used by the
application and exposes the request-scoped session dependency.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from remitdesk.infrastructure.persistence.sqlalchemy.config.base import Base

logger = logging.getLogger(__name__)


def create_engine_and_session_factory(
    database_url: str, *, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Create the async engine and session factory for ``database_url``.

    Args:
        database_url: Async SQLAlchemy URL
        echo: Whether to echo SQL statements

    Returns:
        Tuple of (engine, session factory)
    """
    engine_args: dict[str, Any] = {"echo": echo}

    if database_url.startswith("sqlite"):
        # SQLite-specific settings; a busy timeout lets concurrent writers queue
        engine_args["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        engine_args.update({
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
            "pool_recycle": 300,  # Recycle connections after 5 minutes
        })

    engine = create_async_engine(database_url, **engine_args)
    session_factory = async_sessionmaker(
        engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )
    return engine, session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create every registered table (idempotent)."""
    # Import models so their tables are registered on the shared metadata
    import remitdesk.infrastructure.persistence.sqlalchemy.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created (or verified to exist).")


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async session from the FastAPI app state.

    Yields:
        AsyncSession: An async SQLAlchemy session

    Raises:
        RuntimeError: If the session factory is not available on app state
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        logger.error("Database session factory not found on app.state")
        raise RuntimeError("Database not initialized. Session factory missing from app state.")

    session = session_factory()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database session error: {e}", exc_info=True)
        await session.rollback()
        raise
    finally:
        await session.close()
