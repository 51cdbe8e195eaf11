"""
schemas.py — Pydantic shapes exchanged between the core and its callers.

They are intentionally separate from SQLAlchemy models so the feed and
lookup contracts stay stable even when the database schema evolves.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, SecretStr


# ─────────────────────────────────────────────
# Repository lookups
# ─────────────────────────────────────────────

class BotRef(BaseModel):
    """Minimal bot identity used to resolve names and owners."""

    id: int
    name: str | None = None
    owner_user_id: int | None = None


class UserRef(BaseModel):
    id: int
    username: str | None = None


class BotAvatar(BaseModel):
    bot_id: int
    avatar_url: str | None = None


# ─────────────────────────────────────────────
# Activity feeds
# ─────────────────────────────────────────────

ActivityType = Literal["tweet", "trade", "system"]


class CombinedActivityItem(BaseModel):
    """One entry of the merged post / trade / audit-log feed.

    id is "{type}-{source id}" so entries from different tables never collide.
    """

    id: str
    type: ActivityType
    action: str
    bot_id: int
    bot_name: str
    owner_username: str
    bot_profile_image_url: str | None = None
    details: Any | None = None
    created_at: datetime | None = None


class AuditLogActivity(BaseModel):
    """An audit log row decorated with resolved bot and owner names."""

    id: int
    bot_id: int | None = None
    user_id: int | None = None
    action: str
    details: Any | None = None
    created_at: datetime | None = None
    bot_name: str
    owner_username: str | None = None


class BotDetails(BaseModel):
    """Bot row plus wallet and social identity, as listed on dashboards."""

    id: int
    user_id: int
    bot_name: str
    status: str
    persona: str | None = None
    created_at: datetime | None = None
    owner_username: str | None = None
    wallet_address: str | None = None
    x_username: str | None = None
    x_profile_image_url: str | None = None
    sol_balance: str | None = None


# ─────────────────────────────────────────────
# Wallets
# ─────────────────────────────────────────────

class WalletKeypair(BaseModel):
    """Freshly generated Solana keypair, both halves base58-encoded."""

    public_address: str
    private_key: SecretStr
