"""
src/services/analytics.py — Trading statistics for bots and the platform.

All figures are computed in SQL (COUNT / SUM) rather than by loading rows.
SOL volume only counts trades with status "completed".
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AsyncSessionLocal
from models import Bot, Trade, User

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Read-only aggregate queries over trades, bots and users."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def _one(self, stmt):
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return result.one()

    async def get_24h_volume(self, bot_id: int) -> dict:
        """Return buy / sell / total SOL volume of a bot's completed trades in the last 24h."""
        since = datetime.now(timezone.utc) - timedelta(hours=24)
        amount = func.coalesce(Trade.amount_sol, 0.0)
        row = await self._one(
            select(
                func.coalesce(func.sum(case((Trade.trade_type == "buy", amount), else_=0.0)), 0.0),
                func.coalesce(func.sum(case((Trade.trade_type != "buy", amount), else_=0.0)), 0.0),
            ).where(
                Trade.bot_id == bot_id,
                Trade.status == "completed",
                Trade.created_at >= since,
            )
        )
        buy_volume, sell_volume = float(row[0]), float(row[1])
        return {
            "buy_volume": buy_volume,
            "sell_volume": sell_volume,
            "total_volume": buy_volume + sell_volume,
        }

    async def get_bot_performance(self, bot_id: int) -> dict:
        """Return trade counts and success rate (percent) for a bot."""
        row = await self._one(
            select(
                func.count(Trade.id),
                func.coalesce(func.sum(case((Trade.status == "completed", 1), else_=0)), 0),
                func.coalesce(func.sum(case((Trade.status == "failed", 1), else_=0)), 0),
            ).where(Trade.bot_id == bot_id)
        )
        total, successful, failed = int(row[0]), int(row[1]), int(row[2])
        return {
            "total_trades": total,
            "successful_trades": successful,
            "failed_trades": failed,
            "success_rate": (successful / total) * 100 if total > 0 else 0.0,
        }

    async def get_platform_stats(self) -> dict:
        """Return platform-wide totals. The three reads run concurrently."""
        bots_row, trades_row, users_row = await asyncio.gather(
            self._one(
                select(
                    func.count(Bot.id),
                    func.coalesce(func.sum(case((Bot.status == "active", 1), else_=0)), 0),
                )
            ),
            self._one(
                select(
                    func.count(Trade.id),
                    func.coalesce(func.sum(Trade.amount_sol), 0.0),
                ).where(Trade.status == "completed")
            ),
            self._one(select(func.count(User.id))),
        )
        stats = {
            "total_agents": int(bots_row[0]),
            "active_agents": int(bots_row[1]),
            "total_trades": int(trades_row[0]),
            "total_sol_volume": float(trades_row[1]),
            "total_users": int(users_row[0]),
        }
        logger.debug("Platform stats: %s", stats)
        return stats
