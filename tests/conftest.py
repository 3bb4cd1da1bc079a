"""Shared fixtures for credential tests."""

import os
import pytest
from cryptography.fernet import Fernet

# Set required environment variables before importing app modules
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.ai_service import AIService
from app.config import PlatformKeys
from app.database.database import Base
from app.services.encryption_service import EncryptionService
from app.services.credential_service import UserCredentialsService

PLATFORM_OPENAI_KEY = "sk-platform-openai-0000000000"
PLATFORM_MESHY_KEY = "msy_platform_meshy_000000000"


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so background sessions see committed rows."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credentials.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def encryption_service():
    """Create encryption service with a fresh test key."""
    return EncryptionService(Fernet.generate_key().decode())


@pytest.fixture
def platform_keys():
    return PlatformKeys({
        AIService.OPENAI: PLATFORM_OPENAI_KEY,
        AIService.MESHY: PLATFORM_MESHY_KEY,
    })


@pytest.fixture
async def credentials_service(encryption_service, platform_keys, session_factory):
    service = UserCredentialsService(encryption_service, platform_keys, session_factory)
    yield service
    await service.drain_background_tasks()
