"""
Fernet encryption for stored session tokens.

The key comes from TOKEN_ENCRYPTION_KEY, a URL-safe base64-encoded 32-byte
key as produced by ``Fernet.generate_key()``.
"""

import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_ENV = "TOKEN_ENCRYPTION_KEY"


class EncryptionError(Exception):
    """Raised when a stored token cannot be decrypted or the key is unusable."""

    pass


class TokenCipher:
    """Encrypts and decrypts individual token values."""

    def __init__(self, key: str | bytes):
        if isinstance(key, str):
            key = key.encode()
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Invalid {ENCRYPTION_KEY_ENV}: {e}") from e

    @classmethod
    def from_env(cls) -> "TokenCipher":
        """
        Build a cipher from TOKEN_ENCRYPTION_KEY.

        Raises:
            EncryptionError: If the variable is unset or not a valid key
        """
        key = os.getenv(ENCRYPTION_KEY_ENV)
        if not key:
            raise EncryptionError(
                f"{ENCRYPTION_KEY_ENV} environment variable must be set to persist sessions"
            )
        logger.info("Session token encryption initialized")
        return cls(key)

    @staticmethod
    def generate_key() -> str:
        """Generate a new key suitable for TOKEN_ENCRYPTION_KEY."""
        return Fernet.generate_key().decode()

    def encrypt(self, token: Optional[str]) -> Optional[str]:
        if token is None:
            return None
        return self._fernet.encrypt(token.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored token.

        Raises:
            EncryptionError: If the data was written with another key or is corrupted
        """
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            logger.error("Failed to decrypt stored token: invalid token or key")
            raise EncryptionError("Decryption failed: invalid token or key mismatch") from e


def is_encryption_configured() -> bool:
    return bool(os.getenv(ENCRYPTION_KEY_ENV))
