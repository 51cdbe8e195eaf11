"""
security.py — Encryption and wallet key utilities.

All sensitive operations (key derivation, AES-GCM encryption, Solana keypair
generation) live here so the rest of the codebase never handles raw key
material directly.

Encrypted values are stored as "ivHex:authTagHex:ciphertextHex".
"""

import hashlib
import logging
import secrets

import base58
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from solders.keypair import Keypair

from config import Settings
from schemas import WalletKeypair

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16
SOLANA_PUBKEY_BYTES = 32

# Only ever used when environment == "development" and no secret is set.
_DEV_ONLY_SECRET = "moltcook-dev-only-key"


# ─────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────

class CodecError(Exception):
    """Base class for encryption/decryption failures."""


class FormatError(CodecError):
    """Encrypted blob is not a well-formed iv:tag:ciphertext triple."""


class AuthenticationError(CodecError):
    """Authentication tag did not verify (tampered data or wrong key)."""


class ConfigurationError(CodecError):
    """Encryption secret is missing where it is required."""


# ─────────────────────────────────────────────
# Symmetric encryption (AES-256-GCM)
# ─────────────────────────────────────────────

class SecretCodec:
    """Encrypts short strings (wallet keys, OAuth tokens) at rest.

    The secret and environment are injected once at construction; tests
    build codecs with synthetic secrets instead of touching global settings.
    """

    def __init__(self, secret: str | None, environment: str = "development"):
        self._secret = secret or ""
        self._environment = environment
        if not self._secret and environment == "development":
            logger.warning(
                "SESSION_SECRET not set — using the development-only encryption key"
            )

    @classmethod
    def from_settings(cls, s: Settings) -> "SecretCodec":
        return cls(s.session_secret, environment=s.environment)

    def derive_key(self) -> bytes:
        """Return the 32-byte AES key (SHA-256 of the configured secret).

        Raises:
            ConfigurationError: if no secret is configured outside development.
        """
        if not self._secret:
            if self._environment != "development":
                raise ConfigurationError(
                    f"SESSION_SECRET is required in {self._environment}"
                )
            return hashlib.sha256(_DEV_ONLY_SECRET.encode()).digest()
        return hashlib.sha256(self._secret.encode()).digest()

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext under a fresh random IV.

        Returns:
            "iv:tag:ciphertext", each part hex-encoded.
        """
        iv = secrets.token_bytes(IV_BYTES)
        sealed = AESGCM(self.derive_key()).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, blob: str) -> str:
        """Decrypt a value produced by encrypt().

        Raises:
            FormatError: if the blob is not three hex segments.
            AuthenticationError: if the ciphertext was tampered with or
                encrypted under a different key.
        """
        parts = blob.split(":")
        if len(parts) != 3:
            raise FormatError(
                f"Encrypted value must have 3 segments, got {len(parts)}"
            )
        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError as exc:
            raise FormatError("Encrypted value contains non-hex data") from exc

        key = self.derive_key()
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.error("Failed to decrypt value — possible tampering detected")
            raise AuthenticationError("Authentication tag verification failed") from exc
        except ValueError as exc:
            # Raised by AESGCM for an IV outside the supported length range
            raise FormatError(f"Invalid IV: {exc}") from exc
        return plaintext.decode("utf-8")


# ─────────────────────────────────────────────
# Solana wallets
# ─────────────────────────────────────────────

def generate_wallet_keypair() -> WalletKeypair:
    """Generate a fresh ed25519 keypair for a bot wallet.

    The private key is the 64-byte Solana secret key (seed + public key),
    base58-encoded the way wallets import it.
    """
    keypair = Keypair()
    return WalletKeypair(
        public_address=str(keypair.pubkey()),
        private_key=base58.b58encode(bytes(keypair)).decode("ascii"),
    )


def is_valid_address(address: str) -> bool:
    """Return True if address is base58 and decodes to a 32-byte public key."""
    if not isinstance(address, (str, bytes)):
        return False
    try:
        decoded = base58.b58decode(address)
    except (ValueError, TypeError):
        return False
    return len(decoded) == SOLANA_PUBKEY_BYTES
