"""
config.py — Application configuration.

All settings are loaded from environment variables (via .env file).
Invalid values raise on startup; a missing encryption secret is only
tolerated in development (see security.py).
"""

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration for Moltcook.

    All fields map 1-to-1 to environment variables (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─────────────────────────────────────────────
    # Application
    # ─────────────────────────────────────────────
    app_name: str = "Moltcook"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    # ─────────────────────────────────────────────
    # Database
    # ─────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./moltcook.db"
    db_pool_size: int = 20
    db_max_overflow: int = 40
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800  # recycle connections every 30 min

    # ─────────────────────────────────────────────
    # Encryption
    # ─────────────────────────────────────────────
    # Wallet private keys and social OAuth tokens are encrypted with a key
    # derived from this value. Required outside development.
    session_secret: str = ""

    # ─────────────────────────────────────────────
    # Activity feed
    # ─────────────────────────────────────────────
    activity_feed_limit: int = 30
    activity_content_preview_chars: int = 120

    # ─────────────────────────────────────────────
    # Monitoring
    # ─────────────────────────────────────────────
    sentry_dsn: str = ""

    # ─────────────────────────────────────────────
    # Validators
    # ─────────────────────────────────────────────

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("activity_feed_limit", "activity_content_preview_chars")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    # ─────────────────────────────────────────────
    # Computed properties
    # ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def use_ssl(self) -> bool:
        """Whether SSL should be enforced (production/staging only)."""
        return self.environment in {"production", "staging"}

    @property
    def db_ssl_args(self) -> dict:
        """Extra SQLAlchemy connect_args for SSL in production."""
        if self.use_ssl and "postgresql" in self.database_url:
            return {"ssl": "require"}
        return {}


@lru_cache
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    _settings = Settings()
    logger.info(
        "Config loaded — env=%s debug=%s", _settings.environment, _settings.debug
    )
    return _settings


settings = get_settings()
