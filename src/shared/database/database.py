# src/shared/database/database.py
"""
database.py: async SQLAlchemy engine & session factory

This module owns:
  - Creating & caching the global AsyncEngine
  - Exposing the session factory used by units of work
  - Safe engine disposal for shutdown hooks and tests

Keep this layer infra-only (no domain/app logic).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import Settings, get_settings

logger = structlog.get_logger(__name__)

# ---- Globals ---------------------------------------------------------------

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

# ---- Engine lifecycle ------------------------------------------------------

def build_engine(database_url: str, settings: Optional[Settings] = None) -> AsyncEngine:
    """Create an async engine with pooling suited to the backend."""
    settings = settings or get_settings()
    if database_url.startswith("sqlite"):
        # aiosqlite: no server-side pool; one connection per checkout
        return create_async_engine(database_url, poolclass=NullPool)
    if settings.TESTING:
        return create_async_engine(database_url, poolclass=NullPool, pool_pre_ping=True)
    return create_async_engine(
        database_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": f"{settings.PROJECT_NAME}-{settings.ENVIRONMENT}",
                "statement_timeout": "30000",  # 30s
            }
        },
    )


async def create_database_engine(database_url: str) -> AsyncEngine:
    """
    Create and configure the global async engine and session factory.
    """
    global _engine, _session_factory

    _engine = build_engine(database_url)
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    # Smoke test
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    return _engine


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create all ORM tables (dev/test convenience; production uses alembic)."""
    from src.shared.database.base_model import Base
    # Import models so they register with the metadata
    import src.identity.infrastructure.models  # noqa: F401
    import src.instances.infrastructure.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database_engine() -> None:
    """Dispose engine and reset factories."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def get_engine() -> AsyncEngine:
    """Return initialized engine or raise."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call create_database_engine first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the initialized session factory or raise."""
    if _session_factory is None:
        raise RuntimeError("Session factory not initialized. Call create_database_engine first.")
    return _session_factory


# ---- Sessions --------------------------------------------------------------

@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession with automatic rollback on error and proper close.
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
