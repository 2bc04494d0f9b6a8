"""Async SQLAlchemy engine, session factory and a standalone session scope.

The engine is built lazily from :func:`load_database_config` and shared by
the whole process.  ``session_scope()`` is for code that runs outside a
request (the cleanup CLI): it commits on success and rolls back on error,
the same contract the server's ``get_db`` dependency provides.
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

from relocation_db.config import DatabaseConfig, load_database_config

# One pool per process.
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(config: DatabaseConfig | None = None) -> AsyncEngine:
    """Return the shared async engine, creating it on first use.

    *config* only matters on the first call; afterwards the existing
    engine is returned until :func:`dispose_engine` resets it.
    """
    global _engine
    if _engine is None:
        cfg = config or load_database_config()
        _engine = create_async_engine(
            cfg.async_url,
            echo=cfg.echo,
            pool_size=cfg.pool_size,
            max_overflow=cfg.max_overflow,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the shared session factory bound to :func:`get_engine`."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on success and rolls back on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close the pool and forget the engine (call on shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
