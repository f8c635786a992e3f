"""
Secret Manager Service.

Encrypts provider credentials at rest and decrypts them just in time
for a request.

Uses Fernet symmetric encryption (AES-128-CBC with HMAC-SHA256).
"""

import base64
from typing import Optional

import structlog
from cryptography.fernet import Fernet, InvalidToken

from llm_gateway.core.config import Settings

logger = structlog.get_logger(__name__)


class SecretManagerError(Exception):
    """Exception raised by SecretManager operations."""
    pass


class SecretManager:
    """
    Manages encryption and decryption of secrets.

    Usage:
        manager = SecretManager(SecretManager.generate_key())
        ciphertext = manager.encrypt("my-api-key")
        plaintext = manager.decrypt(ciphertext)
    """

    def __init__(self, key: str):
        """
        Args:
            key: Fernet key (44 chars) or a raw 32-character key

        Raises:
            SecretManagerError: If the key cannot be used
        """
        if not key:
            raise SecretManagerError("Missing encryption key")

        if len(key) == 32:
            key = base64.urlsafe_b64encode(key.encode()).decode()

        try:
            self._fernet = Fernet(key.encode())
        except ValueError as e:
            raise SecretManagerError(f"Invalid encryption key format: {e}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretManager":
        """Build from SECURITY_CREDENTIALS_ENCRYPTION_KEY, generating a key when unset."""
        key: Optional[str] = settings.security.credentials_encryption_key
        if not key:
            logger.warning("No credentials encryption key configured, using an ephemeral key")
            key = cls.generate_key()
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext string.

        Args:
            plaintext: The secret value to encrypt

        Returns:
            Base64-encoded ciphertext
        """
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a ciphertext string.

        Args:
            ciphertext: Base64-encoded ciphertext

        Returns:
            Decrypted plaintext

        Raises:
            SecretManagerError: If decryption fails
        """
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode())
        except InvalidToken:
            raise SecretManagerError("Decryption failed: Invalid token or wrong key")
        return plaintext.decode()

    @classmethod
    def generate_key(cls) -> str:
        """
        Generate a new Fernet-compatible encryption key.

        Returns:
            Base64-encoded 32-byte key suitable for SECURITY_CREDENTIALS_ENCRYPTION_KEY
        """
        return Fernet.generate_key().decode()
