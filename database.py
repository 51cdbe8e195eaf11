"""
database.py — Async SQLAlchemy engine, session factory, and helpers.

Uses asyncpg for PostgreSQL (production) and aiosqlite for SQLite (development).
Schema migrations are owned outside this repository; create_tables() only
bootstraps a fresh database.
"""

import logging
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import Settings, settings

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────

def normalise_database_url(url: str) -> str:
    """Translate sync postgres:// URLs to the asyncpg driver notation."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str, cfg: Settings | None = None) -> AsyncEngine:
    """Create an async engine with pooling appropriate for the backend.

    Pool sizing, SSL and echo come from cfg (the loaded settings by default).
    """
    cfg = cfg or settings
    url = normalise_database_url(url)
    engine_kwargs: dict = {
        "echo": cfg.debug,
        "future": True,
    }

    # SQLite doesn't support pool_size / max_overflow
    if "sqlite" not in url:
        engine_kwargs.update(
            {
                "pool_size": cfg.db_pool_size,
                "max_overflow": cfg.db_max_overflow,
                "pool_timeout": cfg.db_pool_timeout,
                "pool_recycle": cfg.db_pool_recycle,
                "pool_pre_ping": True,  # validate connections before use
            }
        )
        if cfg.db_ssl_args:
            engine_kwargs["connect_args"] = cfg.db_ssl_args

    return create_async_engine(url, **engine_kwargs)


engine = build_engine(settings.database_url)

# ─────────────────────────────────────────────
# Session Factory
# ─────────────────────────────────────────────

def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


AsyncSessionLocal = build_session_factory(engine)


# ─────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
    pass


# ─────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────

async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create all tables defined in models.py.

    Idempotent — safe to call multiple times; existing tables are left intact.
    """
    import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialised")


async def drop_tables(bind: AsyncEngine | None = None) -> None:
    """Drop ALL tables — for use in tests only, never in production."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("All database tables dropped")
