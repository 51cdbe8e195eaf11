"""
models.py — SQLAlchemy ORM models for Moltcook.

Integer primary keys throughout; every record carries a creation timestamp
so the activity feeds can order across tables.
Sensitive fields (wallet keys, OAuth tokens) are stored encrypted via security.py.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from database import Base


class CreatedAtMixin:
    """Adds created_at to any model."""

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True, index=True
    )


# ─────────────────────────────────────────────────────────────────────────────
# USER
# ─────────────────────────────────────────────────────────────────────────────

class User(CreatedAtMixin, Base):
    """Platform account that owns one or more bots."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── Relationships ──────────────────────────────────────────────────────
    bots: Mapped[list["Bot"]] = relationship(
        "Bot", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username}>"


# ─────────────────────────────────────────────────────────────────────────────
# BOT
# ─────────────────────────────────────────────────────────────────────────────

class Bot(CreatedAtMixin, Base):
    """An autonomous social-media agent with its own wallet."""

    __tablename__ = "bots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bot_name: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active"  # active | paused | stopped
    )
    persona: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────
    user: Mapped["User"] = relationship("User", back_populates="bots")

    def __repr__(self) -> str:
        return f"<Bot id={self.id} name={self.bot_name} status={self.status}>"


class BotWallet(CreatedAtMixin, Base):
    """Solana wallet owned by a bot.

    encrypted_private_key is an iv:tag:ciphertext blob produced by SecretCodec.
    """

    __tablename__ = "bot_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    public_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    encrypted_private_key: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<BotWallet bot_id={self.bot_id} address={self.public_address}>"


class BotXAccount(CreatedAtMixin, Base):
    """Linked X (Twitter) identity of a bot. The profile image is the bot avatar."""

    __tablename__ = "bot_x_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    x_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    x_username: Mapped[str] = mapped_column(String(64), nullable=False)
    x_profile_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    encrypted_access_token: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<BotXAccount bot_id={self.bot_id} x_username={self.x_username}>"


# ─────────────────────────────────────────────────────────────────────────────
# TRADING
# ─────────────────────────────────────────────────────────────────────────────

class Trade(CreatedAtMixin, Base):
    """A token swap executed (or attempted) by a bot."""

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False
    )
    token_mint: Mapped[str] = mapped_column(String(64), nullable=False)
    token_symbol: Mapped[str | None] = mapped_column(String(20), nullable=True)
    amount_sol: Mapped[float | None] = mapped_column(Float, nullable=True)
    amount_tokens: Mapped[float | None] = mapped_column(Float, nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    trade_type: Mapped[str] = mapped_column(String(4), nullable=False)  # buy | sell
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="pending"  # pending | completed | failed
    )

    __table_args__ = (
        Index("ix_trades_bot_created", "bot_id", "created_at"),
        Index("ix_trades_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Trade id={self.id} bot_id={self.bot_id} {self.trade_type} status={self.status}>"


class Withdrawal(CreatedAtMixin, Base):
    """SOL moved out of a bot wallet to an owner-supplied address."""

    __tablename__ = "withdrawals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount_sol: Mapped[float] = mapped_column(Float, nullable=False)
    destination_address: Mapped[str] = mapped_column(String(64), nullable=False)
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending")

    def __repr__(self) -> str:
        return f"<Withdrawal id={self.id} bot_id={self.bot_id} status={self.status}>"


# ─────────────────────────────────────────────────────────────────────────────
# SOCIAL
# ─────────────────────────────────────────────────────────────────────────────

class BotPost(CreatedAtMixin, Base):
    """A post (or reply) published by a bot on X."""

    __tablename__ = "bot_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    post_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="original"  # original | reply
    )
    tweet_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="posted")

    __table_args__ = (Index("ix_bot_posts_bot_created", "bot_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<BotPost id={self.id} bot_id={self.bot_id} type={self.post_type}>"


class BotMention(CreatedAtMixin, Base):
    """An inbound mention of a bot picked up from X."""

    __tablename__ = "bot_mentions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tweet_id: Mapped[str] = mapped_column(String(64), nullable=False)
    author_username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    replied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<BotMention id={self.id} bot_id={self.bot_id} replied={self.replied}>"


# ─────────────────────────────────────────────────────────────────────────────
# AUDIT LOG
# ─────────────────────────────────────────────────────────────────────────────

class AuditLog(CreatedAtMixin, Base):
    """Immutable record of bot and platform events.

    Never updated — only inserted. bot_id is null for system-level events;
    details is free-form JSON so new actions need no schema change.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("bots.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_audit_logs_bot_created", "bot_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} action={self.action} bot_id={self.bot_id}>"
