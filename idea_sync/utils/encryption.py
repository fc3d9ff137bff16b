"""Encryption utilities for OAuth tokens stored in the local settings table."""
import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionService:
    """Service for encrypting and decrypting sensitive data."""

    def __init__(self, encryption_key: str = ""):
        self._fernet: Optional[Fernet] = None

        if encryption_key:
            try:
                self._fernet = Fernet(encryption_key.encode())
            except ValueError:
                logger.warning("ENCRYPTION_KEY is not a valid Fernet key; tokens will be stored in plaintext")

    @property
    def is_configured(self) -> bool:
        """Check if encryption is properly configured."""
        return self._fernet is not None

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string value.

        Returns the encrypted value prefixed with 'enc:' to identify encrypted data.
        If encryption is not configured, returns the plaintext.
        """
        if not plaintext:
            return plaintext

        if not self._fernet:
            return plaintext

        encrypted = self._fernet.encrypt(plaintext.encode())
        return f"enc:{encrypted.decode()}"

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt an encrypted string value.

        Values without the 'enc:' prefix are returned unchanged. Undecryptable
        values (missing or rotated key) come back empty.
        """
        if not ciphertext:
            return ciphertext

        if not ciphertext.startswith("enc:"):
            return ciphertext

        if not self._fernet:
            return ""

        try:
            decrypted = self._fernet.decrypt(ciphertext[4:].encode())
            return decrypted.decode()
        except InvalidToken:
            logger.warning("Stored token could not be decrypted with the configured key")
            return ""

