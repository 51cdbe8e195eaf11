"""
tests/conftest.py — Shared pytest configuration and fixtures.

Env setup:
  Tests read from .env.test if present (else .env). No external services are
  needed: storage tests run against a throwaway SQLite file per test.

Markers:
  @pytest.mark.db  — touches a (temporary) database

Run everything:
    pytest tests/ -v

Run without database tests:
    pytest tests/ -m "not db" -v
"""

import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# ─── Path setup ──────────────────────────────────────────────────────────────
# Ensure the project root is on sys.path so imports resolve correctly
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

# Load .env.test if present, else fall back to .env
_env_test = ROOT / ".env.test"
_env_main = ROOT / ".env"
_env_file = _env_test if _env_test.exists() else _env_main

from dotenv import load_dotenv
load_dotenv(_env_file, override=True)

# Tests never run against a deployed environment
os.environ["ENVIRONMENT"] = "development"


# ─── Marker registration ─────────────────────────────────────────────────────
def pytest_configure(config):
    config.addinivalue_line("markers", "db: touches a temporary SQLite database")


# ─── Settings override for tests ─────────────────────────────────────────────
@pytest.fixture(autouse=True)
def reload_settings():
    """Force settings to rebuild per test (avoids stale values)."""
    from config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ─── Codec ───────────────────────────────────────────────────────────────────
@pytest.fixture
def codec():
    """Codec with a synthetic secret."""
    from security import SecretCodec
    return SecretCodec("test-secret-do-not-use-in-prod", environment="production")


# ─── Database ────────────────────────────────────────────────────────────────
@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with all tables created."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from database import create_tables, drop_tables

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(bind=engine)
    yield async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    await drop_tables(bind=engine)
    await engine.dispose()


@pytest.fixture
def storage(session_factory):
    from src.services.storage import DatabaseStorage
    return DatabaseStorage(session_factory)


@pytest.fixture
def analytics(session_factory):
    from src.services.analytics import AnalyticsService
    return AnalyticsService(session_factory)
