"""Async engine and session lifecycle for the reference store."""

import os
import logging
from typing import AsyncGenerator, AsyncIterator, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

from . import models

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./paypal_checkout.db"

# Async driver prefixes for URLs given in their sync form
_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
}

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        return DEFAULT_DATABASE_URL
    for sync_prefix, async_prefix in _ASYNC_DRIVERS.items():
        if db_url.startswith(sync_prefix):
            return async_prefix + db_url[len(sync_prefix):]
    return db_url


def create_async_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> AsyncEngine:
    """Engine for ``database_url`` (DATABASE_URL by default).

    SQLite shares one connection through StaticPool, which keeps an
    in-memory database alive for every session of the engine.
    """
    url = database_url or get_database_url()
    if "sqlite" in url:
        return sa_create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return sa_create_async_engine(url, echo=echo, pool_size=pool_size, max_overflow=max_overflow)


def get_async_session_factory(
    engine: Optional[AsyncEngine] = None,
) -> async_sessionmaker[AsyncSession]:
    if engine is not None:
        return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)


async def init_db(
    database_url: Optional[str] = None,
    echo: bool = False,
    create_all: bool = True,
) -> None:
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=echo)
    _session_factory = get_async_session_factory(_engine)
    logger.info(f"Payment store connected ({_engine.url.get_backend_name()})")

    if create_all:
        await create_tables(_engine)
        logger.info("Payment store tables ready")


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Payment store connection closed")


@asynccontextmanager
async def _transactional(factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed when the handler succeeds."""
    async with _transactional(get_async_session_factory()) as session:
        yield session


@asynccontextmanager
async def get_db_context(engine: Optional[AsyncEngine] = None) -> AsyncIterator[AsyncSession]:
    """Same unit of work as get_db() for code running outside a request."""
    async with _transactional(get_async_session_factory(engine)) as session:
        yield session
