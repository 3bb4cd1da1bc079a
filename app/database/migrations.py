"""Database migration utilities."""

import logging
from sqlalchemy import bindparam, inspect, text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)

UNIQUE_INDEX_NAME = "uq_user_credentials_user_service"
LOOKUP_INDEXES = [
    ("ix_user_credentials_user_id", "user_id"),
    ("ix_user_credentials_service", "service"),
]


def migrate_database(conn: Connection) -> None:
    """Apply database migrations.

    This function checks for missing columns and indexes and adds them if
    needed. It's safe to call multiple times.

    Args:
        conn: Synchronous connection (run through AsyncConnection.run_sync).
    """
    logger.info("Checking for database migrations...")

    inspector = inspect(conn)

    if 'user_credentials' not in inspector.get_table_names():
        logger.info("Database migrations complete")
        return

    columns = [col['name'] for col in inspector.get_columns('user_credentials')]

    # Migration 1: key_prefix and last_used_at were added after the first release
    if 'key_prefix' not in columns:
        logger.info("Adding key_prefix column to user_credentials table")
        conn.execute(text("ALTER TABLE user_credentials ADD COLUMN key_prefix VARCHAR(20)"))
        logger.info("Successfully added key_prefix column")

    if 'last_used_at' not in columns:
        logger.info("Adding last_used_at column to user_credentials table")
        conn.execute(text("ALTER TABLE user_credentials ADD COLUMN last_used_at DATETIME"))
        logger.info("Successfully added last_used_at column")

    # Migration 2: one row per (user_id, service), enforced by a unique index
    if not _has_unique_user_service(inspector):
        removed = _remove_duplicate_credentials(conn)
        if removed:
            logger.warning(f"Removed {removed} duplicate user_credentials rows before adding unique index")
        logger.info(f"Creating unique index {UNIQUE_INDEX_NAME}")
        conn.execute(text(
            f"CREATE UNIQUE INDEX {UNIQUE_INDEX_NAME} ON user_credentials (user_id, service)"
        ))
        logger.info(f"Successfully created {UNIQUE_INDEX_NAME}")

    # Migration 3: lookup indexes that create_all skips on an existing table
    existing_indexes = {index['name'] for index in inspector.get_indexes('user_credentials')}
    for index_name, column in LOOKUP_INDEXES:
        if index_name not in existing_indexes:
            logger.info(f"Creating index {index_name}")
            conn.execute(text(f"CREATE INDEX IF NOT EXISTS {index_name} ON user_credentials ({column})"))

    logger.info("Database migrations complete")


def _has_unique_user_service(inspector) -> bool:
    wanted = ['user_id', 'service']
    for constraint in inspector.get_unique_constraints('user_credentials'):
        if constraint['column_names'] == wanted:
            return True
    for index in inspector.get_indexes('user_credentials'):
        if index.get('unique') and index['column_names'] == wanted:
            return True
    return False


def _remove_duplicate_credentials(conn: Connection) -> int:
    """Keep the most recently updated row for each (user_id, service)."""
    rows = conn.execute(text(
        "SELECT id, user_id, service FROM user_credentials "
        "ORDER BY user_id, service, updated_at DESC, created_at DESC"
    )).all()

    seen = set()
    stale_ids = []
    for row in rows:
        pair = (row.user_id, row.service)
        if pair in seen:
            stale_ids.append(row.id)
        else:
            seen.add(pair)

    if stale_ids:
        stmt = text("DELETE FROM user_credentials WHERE id IN :ids").bindparams(
            bindparam("ids", expanding=True)
        )
        conn.execute(stmt, {"ids": stale_ids})
    return len(stale_ids)


def get_migration_status(conn: Connection) -> dict:
    """Get the status of database migrations.

    Args:
        conn: Synchronous connection.

    Returns:
        Dictionary with migration status information.
    """
    inspector = inspect(conn)

    status = {
        'tables': inspector.get_table_names(),
        'migrations_applied': []
    }

    if 'user_credentials' in status['tables']:
        columns = [col['name'] for col in inspector.get_columns('user_credentials')]

        if 'key_prefix' in columns:
            status['migrations_applied'].append('user_credentials.key_prefix')

        if 'last_used_at' in columns:
            status['migrations_applied'].append('user_credentials.last_used_at')

        if _has_unique_user_service(inspector):
            status['migrations_applied'].append(f'user_credentials.{UNIQUE_INDEX_NAME}')

        index_names = {index['name'] for index in inspector.get_indexes('user_credentials')}
        for index_name, _ in LOOKUP_INDEXES:
            if index_name in index_names:
                status['migrations_applied'].append(f'user_credentials.{index_name}')

    return status
