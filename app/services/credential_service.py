"""User credential service: encrypted per-user API keys with platform fallback."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Set, Union
from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai_service import AIService
from app.config import PlatformKeys
from app.exceptions import DecryptionError, ValidationError
from app.models.credential import CredentialInfo, UserCredential
from app.services.encryption_service import EncryptionService
from app.services.key_format import extract_key_prefix, validate_api_key_format

logger = logging.getLogger(__name__)

ServiceName = Union[AIService, str]


@dataclass(frozen=True)
class DecryptedKey:
    """Stored key decrypted successfully."""

    key: str


@dataclass(frozen=True)
class DecryptionFailure:
    """Stored key could not be decrypted."""

    credential_id: str
    error: DecryptionError


DecryptResult = Union[DecryptedKey, DecryptionFailure]


class CredentialCheck(BaseModel):
    """Outcome of checking that a stored credential is still usable."""

    service: str
    key_prefix: Optional[str] = None
    is_active: bool
    valid: bool


class ServiceStatus(BaseModel):
    """Which key a user's calls to a service would resolve to."""

    service: str
    has_user_key: bool
    has_platform_key: bool
    key_prefix: Optional[str] = None


class UserCredentialsService:
    """Service for storing user API keys and resolving the key to use for a call."""

    def __init__(
        self,
        encryption_service: EncryptionService,
        platform_keys: PlatformKeys,
        session_factory: Callable[[], AsyncSession],
    ):
        """Initialize credential service.

        Args:
            encryption_service: Service for encrypting/decrypting API keys.
            platform_keys: Operator fallback keys, one per service.
            session_factory: Opens sessions for background last-used updates.
        """
        self.encryption_service = encryption_service
        self.platform_keys = platform_keys
        self.session_factory = session_factory
        self._background_tasks: Set[asyncio.Task] = set()

    async def set_credential(
        self,
        db: AsyncSession,
        user_id: str,
        service: ServiceName,
        api_key: str
    ) -> CredentialInfo:
        """Store or replace a user's API key for a service.

        Args:
            db: Database session.
            user_id: Owning user.
            service: Target AI service.
            api_key: Plaintext API key (will be encrypted).

        Returns:
            The stored credential without key material.

        Raises:
            ValidationError: If the service is unknown or the key format is
                rejected. Nothing is written in that case.
        """
        service = AIService.parse(service)
        if not validate_api_key_format(service, api_key):
            raise ValidationError(service.value)

        key_prefix = extract_key_prefix(api_key)
        encrypted_key = self.encryption_service.encrypt(api_key)

        credential = await self._find(db, user_id, service)
        if credential is not None:
            self._replace_key(credential, encrypted_key, key_prefix)
            await db.commit()
            logger.info(f"Updated {service.value} credential {credential.id} for user {user_id}")
        else:
            credential = UserCredential(
                user_id=user_id,
                service=service.value,
                encrypted_api_key=encrypted_key,
                key_prefix=key_prefix,
                is_active=True
            )
            db.add(credential)
            try:
                await db.commit()
                logger.info(f"Created {service.value} credential {credential.id} for user {user_id}")
            except IntegrityError:
                # A concurrent request inserted the row first; update it instead
                await db.rollback()
                logger.info(f"Concurrent insert of {service.value} credential for user {user_id}, retrying as update")
                credential = await self._find(db, user_id, service)
                if credential is None:
                    raise
                self._replace_key(credential, encrypted_key, key_prefix)
                await db.commit()

        await db.refresh(credential)
        return CredentialInfo.model_validate(credential)

    async def get_api_key(self, db: AsyncSession, user_id: str, service: ServiceName) -> Optional[str]:
        """Resolve the API key to use for a user's call to a service.

        The user's active credential wins when it decrypts. Otherwise the
        platform key for the service is returned, or None when the platform
        has none. Never raises.

        Args:
            db: Database session.
            user_id: Calling user.
            service: Target AI service.

        Returns:
            Plaintext API key or None.
        """
        try:
            service = AIService.parse(service)
        except ValidationError as e:
            logger.error(f"Cannot resolve API key for user {user_id}: {e.message}")
            return None

        try:
            credential = await self._find(db, user_id, service, active_only=True)
        except Exception as e:
            logger.exception(f"Credential lookup failed for user {user_id}, service {service.value}: {e}")
            credential = None

        if credential is not None:
            result = self._decrypt(credential)
            if isinstance(result, DecryptedKey):
                self._schedule_last_used(credential.id)
                logger.debug(f"Resolved user key {credential.key_prefix} for {service.value} (credential {credential.id})")
                return result.key
            logger.error(
                f"Failed to decrypt API key for user {user_id}, service {service.value} "
                f"(credential {result.credential_id}): {result.error}; falling back to platform key"
            )

        platform_key = self.platform_keys.get(service)
        if platform_key is None:
            logger.warning(f"No API key available for user {user_id}, service {service.value}")
        return platform_key

    async def has_credential(self, db: AsyncSession, user_id: str, service: ServiceName) -> bool:
        """Check whether a user has an active credential for a service."""
        try:
            service = AIService.parse(service)
        except ValidationError:
            return False
        return await self._find(db, user_id, service, active_only=True) is not None

    async def get_user_credentials(
        self,
        db: AsyncSession,
        user_id: str,
        service: Optional[ServiceName] = None
    ) -> List[CredentialInfo]:
        """List a user's credentials, active and inactive, without key material.

        Args:
            db: Database session.
            user_id: Owning user.
            service: Only return the credential for this service (optional).

        Returns:
            Credentials ordered by creation time.
        """
        stmt = select(UserCredential).where(UserCredential.user_id == user_id)
        if service is not None:
            stmt = stmt.where(UserCredential.service == AIService.parse(service).value)
        stmt = stmt.order_by(UserCredential.created_at, UserCredential.id)

        result = await db.execute(stmt)
        return [CredentialInfo.model_validate(c) for c in result.scalars().all()]

    async def deactivate_credential(self, db: AsyncSession, user_id: str, service: ServiceName) -> bool:
        """Disable a credential without deleting it.

        Returns:
            True if a row existed for (user_id, service), whether or not it
            was already inactive. False if no row matched.
        """
        service = AIService.parse(service)
        result = await db.execute(
            update(UserCredential)
            .where(UserCredential.user_id == user_id, UserCredential.service == service.value)
            .values(is_active=False, updated_at=datetime.utcnow())
        )
        await db.commit()

        if result.rowcount > 0:
            logger.info(f"Deactivated {service.value} credential for user {user_id}")
            return True
        return False

    async def delete_credential(self, db: AsyncSession, user_id: str, service: ServiceName) -> bool:
        """Delete a credential.

        Returns:
            True if a row was removed, False if none matched.
        """
        service = AIService.parse(service)
        result = await db.execute(
            delete(UserCredential)
            .where(UserCredential.user_id == user_id, UserCredential.service == service.value)
        )
        await db.commit()

        if result.rowcount > 0:
            logger.info(f"Deleted {service.value} credential for user {user_id}")
            return True
        return False

    async def check_credential(
        self,
        db: AsyncSession,
        user_id: str,
        service: ServiceName
    ) -> Optional[CredentialCheck]:
        """Check that a stored credential still decrypts to a well-formed key.

        Inactive credentials are checked too.

        Returns:
            CredentialCheck, or None if the user has no credential for the service.
        """
        service = AIService.parse(service)
        credential = await self._find(db, user_id, service)
        if credential is None:
            return None

        result = self._decrypt(credential)
        if isinstance(result, DecryptionFailure):
            logger.warning(f"Credential {credential.id} for user {user_id} failed decryption check: {result.error}")
            valid = False
        else:
            valid = validate_api_key_format(service, result.key)

        return CredentialCheck(
            service=service.value,
            key_prefix=credential.key_prefix,
            is_active=credential.is_active,
            valid=valid
        )

    async def get_service_statuses(self, db: AsyncSession, user_id: str) -> List[ServiceStatus]:
        """Report, for every supported service, which keys are configured."""
        result = await db.execute(
            select(UserCredential).where(
                UserCredential.user_id == user_id,
                UserCredential.is_active.is_(True)
            )
        )
        active = {c.service: c for c in result.scalars().all()}

        statuses = []
        for service in AIService:
            credential = active.get(service.value)
            statuses.append(ServiceStatus(
                service=service.value,
                has_user_key=credential is not None,
                has_platform_key=self.platform_keys.has(service),
                key_prefix=credential.key_prefix if credential is not None else None
            ))
        return statuses

    async def drain_background_tasks(self) -> None:
        """Wait for pending last-used updates to finish."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _find(
        self,
        db: AsyncSession,
        user_id: str,
        service: AIService,
        active_only: bool = False
    ) -> Optional[UserCredential]:
        stmt = select(UserCredential).where(
            UserCredential.user_id == user_id,
            UserCredential.service == service.value
        )
        if active_only:
            stmt = stmt.where(UserCredential.is_active.is_(True))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    def _decrypt(self, credential: UserCredential) -> DecryptResult:
        try:
            return DecryptedKey(self.encryption_service.decrypt(credential.encrypted_api_key))
        except DecryptionError as e:
            return DecryptionFailure(credential_id=credential.id, error=e)
        except Exception as e:
            # Any cipher failure is reported the same way as a bad token
            return DecryptionFailure(credential_id=credential.id, error=DecryptionError(str(e)))

    @staticmethod
    def _replace_key(credential: UserCredential, encrypted_key: str, key_prefix: str) -> None:
        credential.encrypted_api_key = encrypted_key
        credential.key_prefix = key_prefix
        credential.is_active = True
        credential.updated_at = datetime.utcnow()

    def _schedule_last_used(self, credential_id: str) -> None:
        task = asyncio.create_task(self._record_last_used(credential_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _record_last_used(self, credential_id: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(UserCredential)
                    .where(UserCredential.id == credential_id)
                    .values(last_used_at=datetime.utcnow())
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"Failed to record last use of credential {credential_id}: {e}")
