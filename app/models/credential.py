"""User credential database model."""

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, String, Text, Boolean, DateTime, UniqueConstraint, Index
from app.database.database import Base


class UserCredential(Base):
    """Encrypted API key a user has stored for one AI service."""

    __tablename__ = "user_credentials"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False)
    service = Column(String(50), nullable=False)
    encrypted_api_key = Column(Text, nullable=False)
    key_prefix = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint('user_id', 'service', name='uq_user_credentials_user_service'),
        Index('ix_user_credentials_user_id', 'user_id'),
        Index('ix_user_credentials_service', 'service'),
    )


class CredentialInfo(BaseModel):
    """Credential as seen outside the store. Carries no key material."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    service: str
    key_prefix: Optional[str] = None
    is_active: bool
    last_used_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
