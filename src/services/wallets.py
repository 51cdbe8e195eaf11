"""
src/services/wallets.py — Bot wallet provisioning and secret access.

Wires SecretCodec to storage: private keys and X OAuth tokens only ever
reach the database as iv:tag:ciphertext blobs, and every reveal of a
private key is audit-logged.

Codec errors (FormatError / AuthenticationError / ConfigurationError)
propagate to the caller, which turns them into a user-facing failure.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import BotWallet, BotXAccount
from security import SecretCodec, generate_wallet_keypair
from src.services.storage import DatabaseStorage

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Wallets
# ─────────────────────────────────────────────

async def provision_bot_wallet(
    storage: DatabaseStorage, codec: SecretCodec, bot_id: int
) -> BotWallet:
    """Return the bot's wallet, generating and storing a new one if it has none."""
    existing = await storage.get_bot_wallet(bot_id)
    if existing is not None:
        return existing

    keypair = generate_wallet_keypair()
    try:
        wallet = await storage.create_bot_wallet(
            bot_id=bot_id,
            public_address=keypair.public_address,
            encrypted_private_key=codec.encrypt(keypair.private_key.get_secret_value()),
        )
    except IntegrityError:
        # A concurrent call stored the wallet first (bot_id is unique)
        existing = await storage.get_bot_wallet(bot_id)
        if existing is None:
            raise
        logger.info("Wallet already provisioned concurrently: bot_id=%s", bot_id)
        return existing
    await storage.create_audit_log(
        bot_id=bot_id,
        action="wallet_created",
        details={"public_address": keypair.public_address},
    )
    logger.info("Wallet provisioned: bot_id=%s address=%s", bot_id, keypair.public_address)
    return wallet


async def reveal_private_key(
    storage: DatabaseStorage, codec: SecretCodec, bot_id: int, user_id: int
) -> str:
    """Decrypt a bot's private key for its owner.

    Raises:
        LookupError: if the bot or its wallet does not exist.
        PermissionError: if user_id does not own the bot.
        AuthenticationError: if the stored blob fails verification.
    """
    bot = await storage.get_bot(bot_id)
    if bot is None:
        raise LookupError(f"Bot {bot_id} not found")
    if bot.user_id != user_id:
        logger.warning("Wallet reveal refused: bot_id=%s user_id=%s", bot_id, user_id)
        raise PermissionError("Only the bot owner can reveal its private key")

    wallet = await storage.get_bot_wallet(bot_id)
    if wallet is None:
        raise LookupError(f"Bot {bot_id} has no wallet")

    private_key = codec.decrypt(wallet.encrypted_private_key)
    await storage.create_audit_log(
        bot_id=bot_id,
        user_id=user_id,
        action="wallet_revealed",
        details={"public_address": wallet.public_address},
    )
    return private_key


# ─────────────────────────────────────────────
# X (Twitter) accounts
# ─────────────────────────────────────────────

async def link_x_account(
    storage: DatabaseStorage,
    codec: SecretCodec,
    bot_id: int,
    *,
    x_user_id: str,
    x_username: str,
    access_token: str,
    refresh_token: str,
    token_expires_at: datetime | None = None,
    x_profile_image_url: str | None = None,
) -> BotXAccount:
    """Store (or replace) the bot's X identity with its OAuth tokens encrypted."""
    account = await storage.upsert_bot_x_account(
        bot_id,
        x_user_id=x_user_id,
        x_username=x_username,
        x_profile_image_url=x_profile_image_url,
        encrypted_access_token=codec.encrypt(access_token),
        encrypted_refresh_token=codec.encrypt(refresh_token),
        token_expires_at=token_expires_at,
    )
    await storage.create_audit_log(
        bot_id=bot_id, action="x_account_linked", details={"x_username": x_username}
    )
    return account


async def get_x_tokens(
    storage: DatabaseStorage, codec: SecretCodec, bot_id: int
) -> tuple[str, str] | None:
    """Return (access_token, refresh_token) for the bot, or None if unlinked."""
    account = await storage.get_bot_x_account(bot_id)
    if account is None:
        return None
    return (
        codec.decrypt(account.encrypted_access_token),
        codec.decrypt(account.encrypted_refresh_token),
    )
