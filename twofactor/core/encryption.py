"""Encryption service for secrets at rest using Fernet (symmetric encryption)."""

import base64
import hashlib

from cryptography.fernet import Fernet

from twofactor.core.config import settings


class EncryptionService:
    """Service for encrypting and decrypting stored TOTP secrets."""

    def __init__(self, secret_key: str | None = None):
        """Initialize encryption service with a key derived from SECRET_KEY."""
        # Fernet requires a 32-byte urlsafe base64 key
        key_bytes = hashlib.sha256((secret_key or settings.SECRET_KEY).encode()).digest()
        self.cipher = Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt(self, plaintext: bytes) -> str:
        """
        Encrypt raw bytes.

        Args:
            plaintext: Bytes to encrypt

        Returns:
            Fernet token as text
        """
        return self.cipher.encrypt(plaintext).decode()

    def decrypt(self, ciphertext: str) -> bytes:
        """
        Decrypt a Fernet token.

        Args:
            ciphertext: Token produced by ``encrypt``

        Returns:
            Original bytes

        Raises:
            cryptography.fernet.InvalidToken: If decryption fails
        """
        return self.cipher.decrypt(ciphertext.encode())


# Global encryption service instance
encryption_service = EncryptionService()
