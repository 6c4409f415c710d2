"""
Async SQLAlchemy engine, session factory and declarative base.
The engine is created lazily so importing models never opens a connection.
"""

from typing import Any, AsyncIterator, Optional

import structlog
from sqlalchemy import MetaData, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from qaflow.config import settings

logger = structlog.get_logger(__name__)

# Consistent constraint names across PostgreSQL and SQLite
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    metadata = MetaData(naming_convention=convention)


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine for the given URL, enabling foreign keys on SQLite."""
    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, echo=echo)

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Yield a request-scoped session.
    Commits when the request finishes cleanly, rolls back on any exception.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Safe to call repeatedly."""
    from qaflow.models import tables  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialised")


async def close_db() -> None:
    """Dispose of the engine on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
