"""
Encryption at rest for Strava tokens.

Tokens are stored as Fernet ciphertext keyed by TOKEN_ENCRYPTION_KEY. Outside
production a missing key is replaced by a per-process random key, so local
tokens become unreadable after a restart.
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import settings

logger = logging.getLogger(__name__)


class TokenEncryption:
    def __init__(self, encryption_key: Optional[str] = None):
        key = encryption_key or settings.TOKEN_ENCRYPTION_KEY
        if not key:
            if settings.ENVIRONMENT == "production":
                raise RuntimeError("TOKEN_ENCRYPTION_KEY is required in production")
            logger.warning("TOKEN_ENCRYPTION_KEY not set, using a temporary key for this process")
            key = Fernet.generate_key().decode()

        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except ValueError as e:
            raise ValueError(f"TOKEN_ENCRYPTION_KEY is not a valid Fernet key: {e}") from e

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return None
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """Plaintext, or None when the value was written under another key."""
        if not ciphertext:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Stored Strava token could not be decrypted (key changed?)")
            return None


_token_encryption: Optional[TokenEncryption] = None


def get_token_encryption() -> TokenEncryption:
    global _token_encryption
    if _token_encryption is None:
        _token_encryption = TokenEncryption()
    return _token_encryption


def encrypt_token(token: Optional[str]) -> Optional[str]:
    return get_token_encryption().encrypt(token)


def decrypt_token(token: Optional[str]) -> Optional[str]:
    return get_token_encryption().decrypt(token)
