"""Encryption service for securing API keys."""

import sys
import secrets
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
from app.config import settings
from app.exceptions import DecryptionError

KEY_HINT = "Generate a key with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""


class EncryptionService:
    """Service for encrypting and decrypting stored API keys."""

    def __init__(self, encryption_key: Optional[str] = None):
        """Initialize encryption service.

        Args:
            encryption_key: Fernet key. Defaults to ENCRYPTION_KEY from settings.
        """
        key = encryption_key if encryption_key is not None else settings.encryption_key
        self._validate_encryption_key(key)
        self._fernet = Fernet(key.encode())

    def _validate_encryption_key(self, key: Optional[str]) -> None:
        """Validate that encryption key is properly configured.

        Raises:
            SystemExit: If encryption key is missing or invalid.
        """
        if not key:
            print("ERROR: ENCRYPTION_KEY environment variable is not set.", file=sys.stderr)
            print("Stored credentials cannot be read or written without it.", file=sys.stderr)
            print(KEY_HINT, file=sys.stderr)
            sys.exit(1)

        try:
            Fernet(key.encode())
        except Exception as e:
            print(f"ERROR: Invalid ENCRYPTION_KEY format: {e}", file=sys.stderr)
            print(KEY_HINT, file=sys.stderr)
            sys.exit(1)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext string.

        Args:
            plaintext: The string to encrypt.

        Returns:
            The encrypted string (base64 encoded).

        Raises:
            ValueError: If plaintext is empty.
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty text")
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt ciphertext string.

        Args:
            ciphertext: The encrypted string (base64 encoded).

        Returns:
            The decrypted plaintext string.

        Raises:
            DecryptionError: If the ciphertext is empty, corrupted, or was
                encrypted with a different key.
        """
        if not ciphertext:
            raise DecryptionError("Cannot decrypt empty data")
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, UnicodeError) as e:
            raise DecryptionError(
                "Failed to decrypt data - data may be corrupted or encryption key may have changed"
            ) from e

    def self_test(self) -> bool:
        """Round-trip a throwaway value to confirm the key works."""
        probe = f"probe-{secrets.token_hex(8)}"
        try:
            return self.decrypt(self.encrypt(probe)) == probe
        except DecryptionError:
            return False

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode()
