"""
Secret store for credentials persisted by the application.

Provider API keys, webhook secrets and wallet connection strings are stored
encrypted at rest. Values are sealed with Fernet (AES-128-CBC + HMAC-SHA256)
using a key derived from the master key with PBKDF2-HMAC-SHA256.

Settings:
    ENCRYPTION_KEY: Master key (at least 32 characters). Falls back to
        SECRET_KEY when unset.
    ENCRYPTION_SALT: Salt for key derivation.

Usage:
    from core.encryption import get_secret_store

    store = get_secret_store()
    blob = store.encrypt(api_key)
    provider.encrypted_api_key = blob
    ...
    api_key = store.decrypt(provider.encrypted_api_key)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from core.exceptions import DecryptionError

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 32
KDF_ITERATIONS = 100_000


@lru_cache(maxsize=8)
def _derive_fernet_key(master_key: str, salt: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode(),
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(master_key.encode()))


class SecretStore:
    """
    Symmetric encryption and HMAC helpers bound to one master key.

    The derived Fernet key is cached per (key, salt) pair, so building a
    store is cheap after the first derivation.

    Raises:
        ImproperlyConfigured: If the master key is shorter than 32 characters
    """

    def __init__(self, master_key: str, salt: str):
        if not master_key or len(master_key) < MIN_KEY_LENGTH:
            raise ImproperlyConfigured(
                f"ENCRYPTION_KEY must be at least {MIN_KEY_LENGTH} characters"
            )
        self._fernet = Fernet(_derive_fernet_key(master_key, salt))

    @classmethod
    def from_settings(cls) -> SecretStore:
        master_key = getattr(settings, "ENCRYPTION_KEY", None) or settings.SECRET_KEY
        return cls(master_key, settings.ENCRYPTION_SALT)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt text and return a URL-safe token string."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a token produced by encrypt().

        Raises:
            DecryptionError: If the token was tampered with, is malformed,
                or was sealed with a different key
        """
        try:
            return self._fernet.decrypt(blob.encode()).decode()
        except (InvalidToken, ValueError) as e:
            logger.warning("Failed to decrypt stored secret", extra={"error_type": type(e).__name__})
            raise DecryptionError(
                "Stored secret could not be decrypted",
            ) from e

    @staticmethod
    def hmac_sha256(data: str | bytes, secret: str) -> str:
        """Return the hex HMAC-SHA256 digest of data."""
        if isinstance(data, str):
            data = data.encode()
        return hmac.new(secret.encode(), data, hashlib.sha256).hexdigest()

    @staticmethod
    def secure_compare(a: str, b: str) -> bool:
        """
        Constant-time string comparison.

        Both sides are hashed first, so a wrong-length input takes as long
        to reject as a same-length mismatch.
        """
        return hmac.compare_digest(
            hashlib.sha256(a.encode()).digest(),
            hashlib.sha256(b.encode()).digest(),
        )

    @staticmethod
    def generate_secret(nbytes: int = 32) -> str:
        """Return nbytes of randomness as a hex string."""
        return secrets.token_hex(nbytes)


def get_secret_store() -> SecretStore:
    """Build a SecretStore from Django settings."""
    return SecretStore.from_settings()
