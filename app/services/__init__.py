"""Services package."""

from app.services.encryption_service import EncryptionService
from app.services.credential_service import UserCredentialsService, CredentialCheck, ServiceStatus

__all__ = ["EncryptionService", "UserCredentialsService", "CredentialCheck", "ServiceStatus"]
