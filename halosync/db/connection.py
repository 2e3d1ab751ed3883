"""Process-wide async engine and unit-of-work sessions.

The engine is built from ``DATABASE_URL`` on first use. CLI commands open one
session per command and dispose of the engine on exit with ``close_db()``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from halosync.config import DBConfig, get_config
from halosync.db.models import Base

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def _engine_options(db: DBConfig) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": db.echo}
    # aiosqlite uses its own pool; sizing options only apply to server databases
    if not db.url.startswith("sqlite"):
        options.update(
            pool_size=db.pool_size,
            max_overflow=db.pool_max_overflow,
            pool_timeout=db.pool_timeout,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    """Engine for the configured database, created on first call."""
    global _engine, _sessions

    if _engine is None:
        db = get_config().db
        _engine = create_async_engine(db.url, **_engine_options(db))
        _sessions = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """One unit of work: committed on success, rolled back on any error.

    Usage:
        async with get_session() as session:
            await connections.list_connections(session, user_id)
    """
    get_engine()
    assert _sessions is not None
    async with _sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(drop: bool = False) -> None:
    """Create the schema, optionally dropping existing tables first."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _sessions

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None
