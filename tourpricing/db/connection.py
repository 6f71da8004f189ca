"""Engine and session wiring for the pricing store.

One engine per process, built lazily from DBConfig. PostgreSQL (asyncpg)
gets a sized pool; an in-memory SQLite URL gets a single shared connection
so every session sees the same database.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tourpricing.config import DBConfig, get_config
from tourpricing.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def build_engine(db_config: DBConfig) -> AsyncEngine:
    """Create an async engine with pool settings suited to the backend."""
    options: dict = {"echo": db_config.echo}
    url = db_config.url

    if url.startswith("sqlite"):
        if ":memory:" in url:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.pool_max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_pre_ping=True,
            pool_recycle=3600,  # seconds
        )

    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> sessionmaker:
    # Rows handed back from a committed unit of work stay readable
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    """Process-wide engine for DATABASE_URL.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine
    if _engine is None:
        _engine = build_engine(get_config().db)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Session that commits when the block exits cleanly.

    Usage:
        async with get_session() as session:
            await session.execute(stmt)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        await session.commit()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session."""
    async with get_session() as session:
        yield session


async def init_db(drop: bool = False) -> None:
    """Create every table, dropping existing ones first when asked.

    Development and test helper; production schemas are migrated.
    """
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine on shutdown. The next call builds a fresh one."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
