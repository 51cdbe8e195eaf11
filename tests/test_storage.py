"""
tests/test_storage.py — DatabaseStorage against a temporary SQLite database.

Run with:  pytest tests/test_storage.py -v

Covers the per-table accessors, the decorated listings (owner / wallet /
avatar resolution) and the combined feed end to end.
"""

from datetime import datetime, timedelta, timezone

import pytest

pytestmark = pytest.mark.db

T0 = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def _at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


async def _seed_owner_with_bot(storage, username="alice", bot_name="Chef", minutes=0):
    user = await storage.create_user(username=username, password_hash="x")
    bot = await storage.create_bot(user_id=user.id, bot_name=bot_name, created_at=_at(minutes))
    return user, bot


# ═════════════════════════════════════════════
# USERS & BOTS
# ═════════════════════════════════════════════

class TestUsersAndBots:
    @pytest.mark.asyncio
    async def test_create_and_fetch_user(self, storage):
        user = await storage.create_user(username="alice", password_hash="hash1")
        assert user.id is not None
        assert (await storage.get_user(user.id)).username == "alice"
        assert (await storage.get_user_by_username("alice")).id == user.id
        assert await storage.get_user_by_username("nobody") is None

    @pytest.mark.asyncio
    async def test_update_user_password(self, storage):
        user = await storage.create_user(username="alice", password_hash="old")
        await storage.update_user_password(user.id, "new")
        assert (await storage.get_user(user.id)).password_hash == "new"

    @pytest.mark.asyncio
    async def test_delete_user(self, storage):
        user = await storage.create_user(username="alice", password_hash="x")
        await storage.delete_user(user.id)
        assert await storage.get_user(user.id) is None

    @pytest.mark.asyncio
    async def test_bots_listed_newest_first(self, storage):
        user, first = await _seed_owner_with_bot(storage, minutes=0)
        second = await storage.create_bot(user_id=user.id, bot_name="Second", created_at=_at(5))
        bots = await storage.get_bots_by_user(user.id)
        assert [b.id for b in bots] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_bot_defaults_to_active(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        assert bot.status == "active"

    @pytest.mark.asyncio
    async def test_update_bot(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        updated = await storage.update_bot(bot.id, bot_name="Renamed", status="paused")
        assert updated.bot_name == "Renamed"
        assert (await storage.get_bot(bot.id)).status == "paused"

    @pytest.mark.asyncio
    async def test_update_missing_bot_returns_none(self, storage):
        assert await storage.update_bot(404, bot_name="x") is None

    @pytest.mark.asyncio
    async def test_delete_bot(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        await storage.delete_bot(bot.id)
        assert await storage.get_bot(bot.id) is None


# ═════════════════════════════════════════════
# WALLETS / X ACCOUNTS / DETAILS
# ═════════════════════════════════════════════

class TestBotDetails:
    @pytest.mark.asyncio
    async def test_upsert_x_account_updates_in_place(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        first = await storage.upsert_bot_x_account(
            bot.id, x_user_id="1", x_username="chef_v1",
            encrypted_access_token="a", encrypted_refresh_token="r",
        )
        second = await storage.upsert_bot_x_account(
            bot.id, x_user_id="1", x_username="chef_v2",
            encrypted_access_token="a2", encrypted_refresh_token="r2",
        )
        assert second.id == first.id
        assert (await storage.get_bot_x_account(bot.id)).x_username == "chef_v2"

    @pytest.mark.asyncio
    async def test_delete_x_account(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        await storage.upsert_bot_x_account(
            bot.id, x_user_id="1", x_username="chef",
            encrypted_access_token="a", encrypted_refresh_token="r",
        )
        await storage.delete_bot_x_account(bot.id)
        assert await storage.get_bot_x_account(bot.id) is None

    @pytest.mark.asyncio
    async def test_bots_by_user_with_details(self, storage):
        user, bot = await _seed_owner_with_bot(storage)
        bare = await storage.create_bot(user_id=user.id, bot_name="Bare", created_at=_at(1))
        await storage.create_bot_wallet(bot.id, "Addr111", "iv:tag:ct")
        await storage.upsert_bot_x_account(
            bot.id, x_user_id="1", x_username="chef", x_profile_image_url="https://img/chef.png",
            encrypted_access_token="a", encrypted_refresh_token="r",
        )

        details = {d.id: d for d in await storage.get_bots_by_user_with_details(user.id)}

        assert details[bot.id].wallet_address == "Addr111"
        assert details[bot.id].x_username == "chef"
        assert details[bot.id].x_profile_image_url == "https://img/chef.png"
        assert details[bot.id].sol_balance == "0.000000000"
        assert details[bare.id].wallet_address is None
        assert details[bare.id].x_username is None

    @pytest.mark.asyncio
    async def test_all_bots_resolves_owner(self, storage):
        await _seed_owner_with_bot(storage, "alice", "Chef", minutes=0)
        await _seed_owner_with_bot(storage, "bob", "Sous", minutes=1)
        bots = await storage.get_all_bots()
        assert [(b.bot_name, b.owner_username) for b in bots] == [("Sous", "bob"), ("Chef", "alice")]

    @pytest.mark.asyncio
    async def test_all_bots_empty(self, storage):
        assert await storage.get_all_bots() == []


# ═════════════════════════════════════════════
# TRADES / POSTS / MENTIONS / WITHDRAWALS
# ═════════════════════════════════════════════

class TestBotRecords:
    @pytest.mark.asyncio
    async def test_trade_lifecycle(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        trade = await storage.create_trade(
            bot_id=bot.id, token_mint="Mint", trade_type="buy", amount_sol=1.0
        )
        assert trade.status == "pending"
        await storage.update_trade(trade.id, status="completed", tx_hash="sig")
        [stored] = await storage.get_trades_by_bot(bot.id)
        assert stored.status == "completed"
        assert stored.tx_hash == "sig"

    @pytest.mark.asyncio
    async def test_posts_and_mentions_by_bot(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        await storage.create_post(bot_id=bot.id, content="gm", created_at=_at(1))
        await storage.create_post(bot_id=bot.id, content="gn", created_at=_at(2))
        await storage.create_mention(bot_id=bot.id, tweet_id="99", author_username="fan")
        assert [p.content for p in await storage.get_posts_by_bot(bot.id)] == ["gn", "gm"]
        [mention] = await storage.get_mentions_by_bot(bot.id)
        assert mention.replied is False

    @pytest.mark.asyncio
    async def test_withdrawals_by_bot(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        await storage.create_withdrawal(bot_id=bot.id, amount_sol=0.25, destination_address="Dest")
        [withdrawal] = await storage.get_withdrawals_by_bot(bot.id)
        assert withdrawal.amount_sol == pytest.approx(0.25)
        assert withdrawal.status == "pending"


# ═════════════════════════════════════════════
# AUDIT FEEDS
# ═════════════════════════════════════════════

class TestAuditFeeds:
    @pytest.mark.asyncio
    async def test_global_activity_names(self, storage):
        user, bot = await _seed_owner_with_bot(storage)
        await storage.create_audit_log(action="maintenance", created_at=_at(1))
        await storage.create_audit_log(bot_id=bot.id, user_id=user.id, action="bot_started", created_at=_at(2))
        await storage.create_audit_log(user_id=4040, action="user_login", created_at=_at(3))

        feed = await storage.get_global_activity()

        assert [(a.action, a.bot_name, a.owner_username) for a in feed] == [
            ("user_login", "System", "Unknown"),
            ("bot_started", "Chef", "alice"),
            ("maintenance", "System", "System"),
        ]

    @pytest.mark.asyncio
    async def test_global_activity_empty(self, storage):
        assert await storage.get_global_activity() == []

    @pytest.mark.asyncio
    async def test_recent_activity_by_user_only_includes_own_bots(self, storage):
        alice, chef = await _seed_owner_with_bot(storage, "alice", "Chef")
        _, sous = await _seed_owner_with_bot(storage, "bob", "Sous")
        await storage.create_audit_log(bot_id=chef.id, action="a", created_at=_at(1))
        await storage.create_audit_log(bot_id=sous.id, action="b", created_at=_at(2))
        await storage.create_audit_log(bot_id=chef.id, action="c", created_at=_at(3))

        feed = await storage.get_recent_activity_by_user(alice.id, limit=5)

        assert [(a.action, a.bot_name) for a in feed] == [("c", "Chef"), ("a", "Chef")]

    @pytest.mark.asyncio
    async def test_recent_activity_for_user_without_bots(self, storage):
        user = await storage.create_user(username="lonely", password_hash="x")
        assert await storage.get_recent_activity_by_user(user.id) == []

    @pytest.mark.asyncio
    async def test_audit_logs_by_bot(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        await storage.create_audit_log(bot_id=bot.id, action="x", details={"k": "v"})
        [log] = await storage.get_audit_logs_by_bot(bot.id)
        assert log.details == {"k": "v"}


# ═════════════════════════════════════════════
# COMBINED ACTIVITY (end to end)
# ═════════════════════════════════════════════

class TestCombinedActivity:
    @pytest.mark.asyncio
    async def test_scenario_against_database(self, storage):
        user, bot = await _seed_owner_with_bot(storage)
        await storage.upsert_bot_x_account(
            bot.id, x_user_id="1", x_username="chef", x_profile_image_url="https://img/chef.png",
            encrypted_access_token="a", encrypted_refresh_token="r",
        )
        await storage.create_post(bot_id=bot.id, content="first", created_at=_at(1))
        await storage.create_post(bot_id=bot.id, content="second", post_type="reply", created_at=_at(3))
        await storage.create_trade(
            bot_id=bot.id, token_mint="Mint", token_symbol="BONK", trade_type="sell",
            status="completed", amount_sol=0.1, created_at=_at(2),
        )
        await storage.create_audit_log(action="platform_notice", created_at=_at(4))

        items = await storage.get_combined_activity(limit=10)

        assert [i.type for i in items] == ["system", "tweet", "trade", "tweet"]
        assert items[0].bot_name == "System"
        assert items[1].action == "reply_posted"
        assert items[2].action == "token_sold"
        assert all(i.owner_username == "alice" for i in items[1:])
        assert items[3].bot_profile_image_url == "https://img/chef.png"

    @pytest.mark.asyncio
    async def test_limit_applies_to_merged_feed(self, storage):
        _, bot = await _seed_owner_with_bot(storage)
        for i in range(5):
            await storage.create_post(bot_id=bot.id, content=f"p{i}", created_at=_at(i * 2))
            await storage.create_trade(
                bot_id=bot.id, token_mint="Mint", trade_type="buy", created_at=_at(i * 2 + 1)
            )
        items = await storage.get_combined_activity(limit=3)
        assert [i.id.split("-")[0] for i in items] == ["trade", "tweet", "trade"]
        assert items[0].created_at > items[1].created_at > items[2].created_at

    @pytest.mark.asyncio
    async def test_dangling_bot_reference_degrades(self, storage):
        await storage.create_trade(bot_id=4242, token_mint="Mint", trade_type="buy")
        [item] = await storage.get_combined_activity(limit=5)
        assert item.bot_name == "Unknown"
        assert item.owner_username == "Unknown"
