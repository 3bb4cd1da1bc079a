"""Database models package."""

from app.models.credential import UserCredential, CredentialInfo

__all__ = [
    "UserCredential",
    "CredentialInfo",
]
