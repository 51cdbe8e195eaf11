"""
src/services/storage.py — Persistence accessors for users, bots and their activity.

DatabaseStorage is the relational implementation of ActivityRepository plus
the per-table reads and writes the rest of the platform uses. Every method
opens its own session, so calls can be awaited concurrently (the activity
feed gathers several at once).

Listings that decorate rows with names (owners, wallets, avatars) resolve
them with one IN-query per lookup table rather than one query per row.
"""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AsyncSessionLocal
from models import (
    AuditLog,
    Bot,
    BotMention,
    BotPost,
    BotWallet,
    BotXAccount,
    Trade,
    User,
    Withdrawal,
)
from schemas import (
    AuditLogActivity,
    BotAvatar,
    BotDetails,
    BotRef,
    CombinedActivityItem,
    UserRef,
)
from src.services.activity_feed import SYSTEM, UNKNOWN, get_combined_activity

logger = logging.getLogger(__name__)

# Balances are read from the chain by the trading layer; listings show a placeholder.
_UNFETCHED_BALANCE = "0.000000000"


def _bot_details(
    bot: Bot,
    x_account: tuple[str | None, str | None] | None = None,
    **extra,
) -> BotDetails:
    x_username, x_profile_image_url = x_account or (None, None)
    return BotDetails(
        id=bot.id,
        user_id=bot.user_id,
        bot_name=bot.bot_name,
        status=bot.status,
        persona=bot.persona,
        created_at=bot.created_at,
        x_username=x_username,
        x_profile_image_url=x_profile_image_url,
        **extra,
    )


def _log_activity(
    log: AuditLog, bot_name: str, owner_username: str | None = None
) -> AuditLogActivity:
    return AuditLogActivity(
        id=log.id,
        bot_id=log.bot_id,
        user_id=log.user_id,
        action=log.action,
        details=log.details,
        created_at=log.created_at,
        bot_name=bot_name,
        owner_username=owner_username,
    )


class DatabaseStorage:
    """SQLAlchemy-backed storage. Implements ActivityRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def _scalar(self, stmt) -> Any:
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

    async def _scalars(self, stmt) -> list[Any]:
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def _rows(self, stmt) -> list[Any]:
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return list(result.all())

    async def _insert(self, obj):
        async with self._session_factory() as db:
            db.add(obj)
            await db.commit()
            await db.refresh(obj)
            return obj

    async def _execute(self, stmt) -> None:
        async with self._session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    # ─────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────

    async def get_user(self, user_id: int) -> User | None:
        return await self._scalar(select(User).where(User.id == user_id))

    async def get_user_by_username(self, username: str) -> User | None:
        return await self._scalar(select(User).where(User.username == username))

    async def create_user(self, **data) -> User:
        user = await self._insert(User(**data))
        logger.info("User created: id=%s username=%s", user.id, user.username)
        return user

    async def update_user_password(self, user_id: int, password_hash: str) -> None:
        await self._execute(
            update(User).where(User.id == user_id).values(password_hash=password_hash)
        )

    async def delete_user(self, user_id: int) -> None:
        await self._execute(delete(User).where(User.id == user_id))
        logger.info("User deleted: id=%s", user_id)

    # ─────────────────────────────────────────────
    # Bots
    # ─────────────────────────────────────────────

    async def create_bot(self, **data) -> Bot:
        bot = await self._insert(Bot(**data))
        logger.info("Bot created: id=%s user_id=%s", bot.id, bot.user_id)
        return bot

    async def get_bots_by_user(self, user_id: int) -> list[Bot]:
        return await self._scalars(
            select(Bot).where(Bot.user_id == user_id).order_by(Bot.created_at.desc())
        )

    async def get_bot(self, bot_id: int) -> Bot | None:
        return await self._scalar(select(Bot).where(Bot.id == bot_id))

    async def update_bot(self, bot_id: int, **data) -> Bot | None:
        async with self._session_factory() as db:
            bot = await db.get(Bot, bot_id)
            if bot is None:
                return None
            for field, value in data.items():
                setattr(bot, field, value)
            await db.commit()
            await db.refresh(bot)
            return bot

    async def delete_bot(self, bot_id: int) -> None:
        await self._execute(delete(Bot).where(Bot.id == bot_id))
        logger.info("Bot deleted: id=%s", bot_id)

    async def get_bots_by_user_with_details(self, user_id: int) -> list[BotDetails]:
        """Return a user's bots with wallet address and X identity attached."""
        bots = await self.get_bots_by_user(user_id)
        if not bots:
            return []

        bot_ids = [b.id for b in bots]
        wallets = await self._wallet_addresses(bot_ids)
        x_accounts = await self._x_identities(bot_ids)

        return [
            _bot_details(
                bot,
                wallet_address=wallets.get(bot.id),
                x_account=x_accounts.get(bot.id),
                sol_balance=_UNFETCHED_BALANCE,
            )
            for bot in bots
        ]

    async def get_all_bots(self, limit: int = 50) -> list[BotDetails]:
        """Return the most recent bots across all users with owner names."""
        bots = await self._scalars(
            select(Bot).order_by(Bot.created_at.desc()).limit(limit)
        )
        if not bots:
            return []

        usernames = {
            u.id: u.username for u in await self.get_users_by_ids({b.user_id for b in bots})
        }
        bot_ids = [b.id for b in bots]
        wallets = await self._wallet_addresses(bot_ids)
        x_accounts = await self._x_identities(bot_ids)

        return [
            _bot_details(
                bot,
                owner_username=usernames.get(bot.user_id) or UNKNOWN,
                wallet_address=wallets.get(bot.id),
                x_account=x_accounts.get(bot.id),
            )
            for bot in bots
        ]

    async def _wallet_addresses(self, bot_ids: list[int]) -> dict[int, str]:
        rows = await self._rows(
            select(BotWallet.bot_id, BotWallet.public_address).where(
                BotWallet.bot_id.in_(bot_ids)
            )
        )
        return {row.bot_id: row.public_address for row in rows}

    async def _x_identities(self, bot_ids: list[int]) -> dict[int, tuple[str | None, str | None]]:
        rows = await self._rows(
            select(
                BotXAccount.bot_id, BotXAccount.x_username, BotXAccount.x_profile_image_url
            ).where(BotXAccount.bot_id.in_(bot_ids))
        )
        return {row.bot_id: (row.x_username, row.x_profile_image_url) for row in rows}

    # ─────────────────────────────────────────────
    # Wallets & X accounts
    # ─────────────────────────────────────────────

    async def get_bot_wallet(self, bot_id: int) -> BotWallet | None:
        return await self._scalar(select(BotWallet).where(BotWallet.bot_id == bot_id))

    async def create_bot_wallet(
        self, bot_id: int, public_address: str, encrypted_private_key: str
    ) -> BotWallet:
        return await self._insert(
            BotWallet(
                bot_id=bot_id,
                public_address=public_address,
                encrypted_private_key=encrypted_private_key,
            )
        )

    async def get_bot_x_account(self, bot_id: int) -> BotXAccount | None:
        return await self._scalar(select(BotXAccount).where(BotXAccount.bot_id == bot_id))

    async def upsert_bot_x_account(self, bot_id: int, **data) -> BotXAccount:
        """Insert the bot's X account, or overwrite the linked one in place."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(BotXAccount).where(BotXAccount.bot_id == bot_id)
            )
            account = result.scalar_one_or_none()
            if account is None:
                account = BotXAccount(bot_id=bot_id, **data)
                db.add(account)
            else:
                for field, value in data.items():
                    setattr(account, field, value)
            await db.commit()
            await db.refresh(account)
            return account

    async def delete_bot_x_account(self, bot_id: int) -> None:
        await self._execute(delete(BotXAccount).where(BotXAccount.bot_id == bot_id))

    # ─────────────────────────────────────────────
    # Trades & withdrawals
    # ─────────────────────────────────────────────

    async def get_trades_by_bot(self, bot_id: int) -> list[Trade]:
        return await self._scalars(
            select(Trade).where(Trade.bot_id == bot_id).order_by(Trade.created_at.desc())
        )

    async def create_trade(self, **data) -> Trade:
        return await self._insert(Trade(**data))

    async def update_trade(self, trade_id: int, **data) -> None:
        await self._execute(update(Trade).where(Trade.id == trade_id).values(**data))

    async def get_withdrawals_by_bot(self, bot_id: int) -> list[Withdrawal]:
        return await self._scalars(
            select(Withdrawal)
            .where(Withdrawal.bot_id == bot_id)
            .order_by(Withdrawal.created_at.desc())
        )

    async def create_withdrawal(self, **data) -> Withdrawal:
        return await self._insert(Withdrawal(**data))

    # ─────────────────────────────────────────────
    # Posts & mentions
    # ─────────────────────────────────────────────

    async def get_posts_by_bot(self, bot_id: int) -> list[BotPost]:
        return await self._scalars(
            select(BotPost).where(BotPost.bot_id == bot_id).order_by(BotPost.created_at.desc())
        )

    async def create_post(self, **data) -> BotPost:
        return await self._insert(BotPost(**data))

    async def get_mentions_by_bot(self, bot_id: int) -> list[BotMention]:
        return await self._scalars(
            select(BotMention)
            .where(BotMention.bot_id == bot_id)
            .order_by(BotMention.created_at.desc())
        )

    async def create_mention(self, **data) -> BotMention:
        return await self._insert(BotMention(**data))

    # ─────────────────────────────────────────────
    # Audit logs
    # ─────────────────────────────────────────────

    async def get_audit_logs_by_bot(self, bot_id: int) -> list[AuditLog]:
        return await self._scalars(
            select(AuditLog).where(AuditLog.bot_id == bot_id).order_by(AuditLog.created_at.desc())
        )

    async def create_audit_log(self, **data) -> AuditLog:
        return await self._insert(AuditLog(**data))

    async def get_recent_activity_by_user(
        self, user_id: int, limit: int = 20
    ) -> list[AuditLogActivity]:
        """Return recent audit logs for all of a user's bots, with bot names."""
        bots = await self._rows(
            select(Bot.id, Bot.bot_name).where(Bot.user_id == user_id)
        )
        if not bots:
            return []
        names = {b.id: b.bot_name for b in bots}

        logs = await self._scalars(
            select(AuditLog)
            .where(AuditLog.bot_id.in_(list(names)))
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return [
            _log_activity(log, bot_name=names.get(log.bot_id) or UNKNOWN)
            for log in logs
        ]

    async def get_global_activity(self, limit: int = 30) -> list[AuditLogActivity]:
        """Return recent audit logs across the platform with bot and actor names."""
        logs = await self.list_recent_audit_logs(limit)
        if not logs:
            return []

        bot_ids = {log.bot_id for log in logs if log.bot_id is not None}
        user_ids = {log.user_id for log in logs if log.user_id is not None}
        names = {b.id: b.name for b in await self.get_bots_by_ids(bot_ids)} if bot_ids else {}
        usernames = (
            {u.id: u.username for u in await self.get_users_by_ids(user_ids)}
            if user_ids else {}
        )

        activity = []
        for log in logs:
            bot_name = (names.get(log.bot_id) or UNKNOWN) if log.bot_id is not None else SYSTEM
            owner = (usernames.get(log.user_id) or UNKNOWN) if log.user_id is not None else SYSTEM
            activity.append(_log_activity(log, bot_name=bot_name, owner_username=owner))
        return activity

    # ─────────────────────────────────────────────
    # ActivityRepository
    # ─────────────────────────────────────────────

    async def list_recent_posts(self, limit: int) -> list[BotPost]:
        return await self._scalars(
            select(BotPost).order_by(BotPost.created_at.desc()).limit(limit)
        )

    async def list_recent_trades(self, limit: int) -> list[Trade]:
        return await self._scalars(
            select(Trade).order_by(Trade.created_at.desc()).limit(limit)
        )

    async def list_recent_audit_logs(self, limit: int) -> list[AuditLog]:
        return await self._scalars(
            select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
        )

    async def get_bots_by_ids(self, ids: Iterable[int]) -> list[BotRef]:
        rows = await self._rows(
            select(Bot.id, Bot.bot_name, Bot.user_id).where(Bot.id.in_(list(ids)))
        )
        return [BotRef(id=r.id, name=r.bot_name, owner_user_id=r.user_id) for r in rows]

    async def get_users_by_ids(self, ids: Iterable[int]) -> list[UserRef]:
        rows = await self._rows(
            select(User.id, User.username).where(User.id.in_(list(ids)))
        )
        return [UserRef(id=r.id, username=r.username) for r in rows]

    async def get_bot_avatars_by_ids(self, ids: Iterable[int]) -> list[BotAvatar]:
        rows = await self._rows(
            select(BotXAccount.bot_id, BotXAccount.x_profile_image_url).where(
                BotXAccount.bot_id.in_(list(ids))
            )
        )
        return [BotAvatar(bot_id=r.bot_id, avatar_url=r.x_profile_image_url) for r in rows]

    async def get_combined_activity(self, limit: int | None = None) -> list[CombinedActivityItem]:
        return await get_combined_activity(self, limit)
