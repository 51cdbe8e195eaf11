"""
main.py — Process startup for the Moltcook core.

Configures logging and error tracking, validates the encryption secret,
initialises the database and hands request handlers a Services bundle.

    services = await startup()
    feed = await services.storage.get_combined_activity(limit=30)
"""

import logging
from dataclasses import dataclass

import sentry_sdk
from sqlalchemy.ext.asyncio import AsyncEngine

from config import Settings, settings
from database import build_engine, build_session_factory, create_tables
from security import SecretCodec
from src.services.analytics import AnalyticsService
from src.services.storage import DatabaseStorage

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────

def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


# ─────────────────────────────────────────────
# Sentry (production error tracking)
# ─────────────────────────────────────────────

def init_sentry(cfg: Settings) -> bool:
    """Initialise Sentry when a real DSN is configured. Returns True if enabled."""
    configured = (
        cfg.sentry_dsn
        and not cfg.sentry_dsn.startswith("https://your-sentry")
        and "project-id" not in cfg.sentry_dsn
    )
    if not configured:
        logger.info("Sentry not configured — skipping")
        return False
    try:
        sentry_sdk.init(
            dsn=cfg.sentry_dsn,
            environment=cfg.environment,
            traces_sample_rate=0.2,
        )
    except Exception as exc:
        logger.warning("Sentry init failed (skipping): %s", exc)
        return False
    logger.info("Sentry initialised")
    return True


# ─────────────────────────────────────────────
# Startup
# ─────────────────────────────────────────────

@dataclass
class Services:
    """Long-lived collaborators shared by request handlers."""

    storage: DatabaseStorage
    analytics: AnalyticsService
    codec: SecretCodec
    engine: AsyncEngine

    async def shutdown(self) -> None:
        await self.engine.dispose()


async def startup(cfg: Settings | None = None, init_db: bool = True) -> Services:
    """Run startup tasks and return the service bundle.

    Raises:
        ConfigurationError: if SESSION_SECRET is missing outside development.
    """
    cfg = cfg or settings
    configure_logging(cfg.debug)
    logger.info("Starting %s v%s (%s)", cfg.app_name, cfg.app_version, cfg.environment)
    init_sentry(cfg)

    codec = SecretCodec.from_settings(cfg)
    # Fail at boot, not on the first wallet operation
    codec.derive_key()
    logger.info("Encryption secret: %s", "configured" if cfg.session_secret else "development fallback")

    engine = build_engine(cfg.database_url, cfg)
    session_factory = build_session_factory(engine)
    if init_db:
        await create_tables(bind=engine)

    return Services(
        storage=DatabaseStorage(session_factory),
        analytics=AnalyticsService(session_factory),
        codec=codec,
        engine=engine,
    )
