"""Test database models and schema."""

import pytest
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models import UserCredential, CredentialInfo


class TestUserCredentialModel:
    """Test UserCredential model."""

    @pytest.mark.asyncio
    async def test_create_credential(self, db_session):
        """Test creating a credential row with defaults."""
        credential = UserCredential(
            user_id="u1",
            service="openai",
            encrypted_api_key="encrypted_key_123",
            key_prefix="sk-test",
        )
        db_session.add(credential)
        await db_session.commit()
        await db_session.refresh(credential)

        assert credential.id is not None
        assert len(credential.id) == 36
        assert credential.is_active is True
        assert credential.last_used_at is None
        assert isinstance(credential.created_at, datetime)
        assert isinstance(credential.updated_at, datetime)

    @pytest.mark.asyncio
    async def test_same_service_different_users(self, db_session):
        """Test that the unique constraint is per user."""
        db_session.add(UserCredential(user_id="u1", service="openai", encrypted_api_key="k1"))
        db_session.add(UserCredential(user_id="u2", service="openai", encrypted_api_key="k2"))
        await db_session.commit()

        result = await db_session.execute(select(UserCredential).where(UserCredential.service == "openai"))
        assert len(result.scalars().all()) == 2

    @pytest.mark.asyncio
    async def test_duplicate_pair_rejected(self, db_session):
        """Test that (user_id, service) is unique."""
        db_session.add(UserCredential(user_id="u1", service="meshy", encrypted_api_key="k1"))
        await db_session.commit()

        db_session.add(UserCredential(user_id="u1", service="meshy", encrypted_api_key="k2"))
        with pytest.raises(IntegrityError):
            await db_session.commit()

    @pytest.mark.asyncio
    async def test_encrypted_key_required(self, db_session):
        db_session.add(UserCredential(user_id="u1", service="fal"))
        with pytest.raises(IntegrityError):
            await db_session.commit()


class TestCredentialInfo:
    """Test the sanitized projection."""

    def test_from_orm_row_drops_key(self):
        now = datetime.utcnow()
        credential = UserCredential(
            id="c1",
            user_id="u1",
            service="openai",
            encrypted_api_key="secret-ciphertext",
            key_prefix="sk-test",
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        info = CredentialInfo.model_validate(credential)

        assert info.id == "c1"
        assert info.key_prefix == "sk-test"
        assert "encrypted_api_key" not in info.model_dump()
        assert "secret-ciphertext" not in info.model_dump_json()

    def test_fields(self):
        assert set(CredentialInfo.model_fields) == {
            "id", "user_id", "service", "key_prefix", "is_active",
            "last_used_at", "created_at", "updated_at",
        }
