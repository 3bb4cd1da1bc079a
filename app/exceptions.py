"""Credential error types."""

from typing import Optional


class CredentialError(Exception):
    """Base class for credential store errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CredentialError):
    """Raised when a credential is rejected before it is written."""

    def __init__(self, service: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid API key format for service: {service}")
        self.service = service


class DecryptionError(CredentialError):
    """Raised when stored ciphertext cannot be decrypted."""
