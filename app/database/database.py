"""Database configuration and session management."""

import os
import logging
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings

logger = logging.getLogger(__name__)

# Create data directory if it doesn't exist
if "/data/" in settings.database_url:
    os.makedirs("data", exist_ok=True)

# Create SQLAlchemy engine
engine = create_async_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
)

# Create session factory
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """Get database session dependency."""
    async with SessionLocal() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise


def _table_names(sync_conn):
    return inspect(sync_conn).get_table_names()


async def init_db(bind=None):
    """Initialize database tables.

    Creates all tables defined in the models if they don't exist.
    This function is idempotent and safe to call multiple times.

    Args:
        bind: Async engine to initialize. Defaults to the application engine.
    """
    # Import all models to ensure they are registered with Base
    from app.models import UserCredential  # noqa: F401

    bind = bind or engine
    logger.info("Initializing database...")

    async with bind.begin() as conn:
        existing_tables = await conn.run_sync(_table_names)

        if not existing_tables:
            logger.info("No existing tables found. Creating all tables...")
        else:
            logger.info(f"Found existing tables: {existing_tables}")

        # Run migrations for existing databases before create_all adds missing tables
        if existing_tables:
            logger.info("Running database migrations...")
            from app.database.migrations import migrate_database
            await conn.run_sync(migrate_database)

        await conn.run_sync(Base.metadata.create_all)

        created_tables = await conn.run_sync(_table_names)
    logger.info(f"Database initialized with tables: {created_tables}")


async def drop_all_tables(bind=None):
    """Drop all tables from the database.

    WARNING: This will delete all data. Use only for testing or development.
    """
    logger.warning("Dropping all tables from database...")
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("All tables dropped successfully")


async def reset_db(bind=None):
    """Reset the database by dropping and recreating all tables.

    WARNING: This will delete all data. Use only for testing or development.
    """
    logger.warning("Resetting database...")
    await drop_all_tables(bind)
    await init_db(bind)
    logger.info("Database reset complete")
