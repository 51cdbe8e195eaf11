"""
src/services/activity_feed.py — Combined bot activity feed.

Merges the three independently paginated event streams (posts, trades,
audit logs) into one newest-first feed:

    fetch `limit` from each source (concurrently)
      → resolve bots / owners / avatars in batch
      → normalise each record to a CombinedActivityItem
      → merge, sort by created_at, truncate to `limit`

Lookups are batched by distinct id so the number of queries is constant
regardless of `limit`. A record whose bot or owner cannot be resolved still
appears, labelled "Unknown" (or "System" for bot-less audit logs).
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from config import settings
from schemas import BotAvatar, BotRef, CombinedActivityItem, UserRef

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
SYSTEM = "System"
SYSTEM_BOT_ID = 0


class ActivityRepository(Protocol):
    """Read access the feed needs. DatabaseStorage implements it."""

    async def list_recent_posts(self, limit: int) -> Sequence[Any]: ...

    async def list_recent_trades(self, limit: int) -> Sequence[Any]: ...

    async def list_recent_audit_logs(self, limit: int) -> Sequence[Any]: ...

    async def get_bots_by_ids(self, ids: Iterable[int]) -> Sequence[BotRef]: ...

    async def get_users_by_ids(self, ids: Iterable[int]) -> Sequence[UserRef]: ...

    async def get_bot_avatars_by_ids(self, ids: Iterable[int]) -> Sequence[BotAvatar]: ...


# ─────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────

class _Lookups:
    """Per-call id → metadata maps. Never shared between calls."""

    def __init__(
        self,
        bots: Sequence[BotRef],
        users: Sequence[UserRef],
        avatars: Sequence[BotAvatar],
    ):
        self.bots = {b.id: b for b in bots}
        self.usernames = {u.id: u.username for u in users}
        self.avatars = {a.bot_id: a.avatar_url for a in avatars}

    def bot_name(self, bot_id: int) -> str:
        bot = self.bots.get(bot_id)
        return (bot.name if bot else None) or UNKNOWN

    def owner_of(self, bot_id: int) -> str:
        bot = self.bots.get(bot_id)
        if bot is None or bot.owner_user_id is None:
            return UNKNOWN
        return self.usernames.get(bot.owner_user_id) or UNKNOWN

    def username(self, user_id: int) -> str:
        return self.usernames.get(user_id) or UNKNOWN

    def avatar(self, bot_id: int) -> str | None:
        return self.avatars.get(bot_id) or None


async def _resolve(
    repo: ActivityRepository, bot_ids: list[int], acting_user_ids: set[int]
) -> _Lookups:
    # Owners are only known once bots are loaded; avatars do not wait on either.
    bots, avatars = await asyncio.gather(
        repo.get_bots_by_ids(bot_ids),
        repo.get_bot_avatars_by_ids(bot_ids),
    )
    user_ids = {b.owner_user_id for b in bots if b.owner_user_id is not None}
    user_ids |= acting_user_ids
    users = await repo.get_users_by_ids(sorted(user_ids)) if user_ids else []
    return _Lookups(bots, users, avatars)


# ─────────────────────────────────────────────
# Normalisation
# ─────────────────────────────────────────────

def _preview(content: str | None, max_chars: int) -> str | None:
    return content[:max_chars] if content is not None else None


def _post_item(post: Any, lookups: _Lookups, preview_chars: int) -> CombinedActivityItem:
    return CombinedActivityItem(
        id=f"tweet-{post.id}",
        type="tweet",
        action="reply_posted" if post.post_type == "reply" else "tweet_posted",
        bot_id=post.bot_id,
        bot_name=lookups.bot_name(post.bot_id),
        owner_username=lookups.owner_of(post.bot_id),
        bot_profile_image_url=lookups.avatar(post.bot_id),
        details={
            "content": _preview(post.content, preview_chars),
            "tweet_id": post.tweet_id,
            "post_type": post.post_type,
            "status": post.status,
        },
        created_at=post.created_at,
    )


def _trade_item(trade: Any, lookups: _Lookups) -> CombinedActivityItem:
    return CombinedActivityItem(
        id=f"trade-{trade.id}",
        type="trade",
        action="token_bought" if trade.trade_type == "buy" else "token_sold",
        bot_id=trade.bot_id,
        bot_name=lookups.bot_name(trade.bot_id),
        owner_username=lookups.owner_of(trade.bot_id),
        bot_profile_image_url=lookups.avatar(trade.bot_id),
        details={
            "token_mint": trade.token_mint,
            "token_symbol": trade.token_symbol,
            "amount_sol": trade.amount_sol,
            "amount_tokens": trade.amount_tokens,
            "tx_hash": trade.tx_hash,
            "status": trade.status,
            "trade_type": trade.trade_type,
        },
        created_at=trade.created_at,
    )


def _log_item(log: Any, lookups: _Lookups) -> CombinedActivityItem:
    if log.bot_id is not None:
        bot_name = lookups.bot_name(log.bot_id)
        if log.bot_id in lookups.bots:
            owner = lookups.owner_of(log.bot_id)
        elif log.user_id is not None:
            owner = lookups.username(log.user_id)
        else:
            owner = UNKNOWN
        avatar = lookups.avatar(log.bot_id)
    else:
        bot_name = SYSTEM
        owner = lookups.username(log.user_id) if log.user_id is not None else SYSTEM
        avatar = None

    return CombinedActivityItem(
        id=f"system-{log.id}",
        type="system",
        action=log.action,
        bot_id=log.bot_id if log.bot_id is not None else SYSTEM_BOT_ID,
        bot_name=bot_name,
        owner_username=owner,
        bot_profile_image_url=avatar,
        details=log.details,
        created_at=log.created_at,
    )


def _sort_key(item: CombinedActivityItem) -> float:
    return item.created_at.timestamp() if item.created_at else 0.0


# ─────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────

async def get_combined_activity(
    repo: ActivityRepository,
    limit: int | None = None,
) -> list[CombinedActivityItem]:
    """Return at most `limit` recent posts, trades and audit logs, newest first.

    Args:
        repo: Anything implementing ActivityRepository.
        limit: Maximum items to return; defaults to ACTIVITY_FEED_LIMIT.

    Returns:
        Items sorted by created_at descending; items without a timestamp last.
    """
    if limit is None:
        limit = settings.activity_feed_limit
    if limit <= 0:
        return []

    # Each source contributes up to `limit` so the true top-`limit` survives the merge
    posts, trades, logs = await asyncio.gather(
        repo.list_recent_posts(limit),
        repo.list_recent_trades(limit),
        repo.list_recent_audit_logs(limit),
    )

    bot_ids: set[int] = {p.bot_id for p in posts}
    bot_ids.update(t.bot_id for t in trades)
    bot_ids.update(log.bot_id for log in logs if log.bot_id is not None)
    if not bot_ids:
        return []

    acting_user_ids = {log.user_id for log in logs if log.user_id is not None}
    lookups = await _resolve(repo, sorted(bot_ids), acting_user_ids)

    preview_chars = settings.activity_content_preview_chars
    items = [_post_item(p, lookups, preview_chars) for p in posts]
    items.extend(_trade_item(t, lookups) for t in trades)
    items.extend(_log_item(log, lookups) for log in logs)

    items.sort(key=_sort_key, reverse=True)
    logger.debug(
        "Combined activity: %d posts, %d trades, %d logs → %d items (limit=%d)",
        len(posts), len(trades), len(logs), min(len(items), limit), limit,
    )
    return items[:limit]
