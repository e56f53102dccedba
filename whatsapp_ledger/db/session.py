"""
Engine and session lifecycle for the ledger store.

One engine per process, created by ``init_db`` from the lifespan handler and
disposed by ``close_db``. Plain ``sqlite:///`` and ``postgresql://`` URLs are
accepted from configuration and mapped onto their async drivers.
"""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base

logger = logging.getLogger(__name__)

ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgres": "postgresql+psycopg",
    "postgresql": "postgresql+psycopg",
}

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def async_database_url(database_url: str) -> URL:
    """Swap a sync driver for its async counterpart. Explicit drivers are kept."""
    url = make_url(database_url)
    return url.set(drivername=ASYNC_DRIVERS.get(url.drivername, url.drivername))


async def init_db(database_url: str) -> None:
    """Create the engine, the session factory and any missing tables."""
    global _engine, _session_factory

    url = async_database_url(database_url)
    engine_options = {}
    if url.get_backend_name() != "sqlite":
        # server connections can go stale between webhook bursts
        engine_options["pool_pre_ping"] = True

    _engine = create_async_engine(url, **engine_options)
    # Processors read rows back after each mutation commits
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ledger store ready at %s", url.render_as_string(hide_password=True))


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work outside a request, e.g. a second connection in tests."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back if the handler raises."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Ledger store closed")
