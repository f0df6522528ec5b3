"""
DevFocus - Database Connection
==============================

Async SQLAlchemy engine and request-scoped sessions.

The engine is built on first use, so importing the models (for example from
the client library, through the schemas) never opens a connection pool.
"""

from collections.abc import AsyncGenerator
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from devfocus.core.config import settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine for ``url``."""
    if url.startswith("sqlite"):
        # No pool sizing for SQLite; connections hop between aiosqlite threads
        return create_async_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        echo=settings.DATABASE_ECHO,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL)
        logger.info("database_engine_created", sqlite=settings.is_sqlite)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    The whole request runs as one unit of work: it is committed when the
    endpoint returns and rolled back if it raises.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables."""
    from devfocus.core import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine; the next use builds a fresh one."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
