"""Database connection for news_brief.

This module owns the async SQLite connection shared by the content cache and
the workflow checkpoint store.
Database location: ~/.news_brief/news_brief.db (or NEWS_BRIEF_DB_PATH env var)
"""

import aiosqlite
from pathlib import Path
from typing import Optional

from news_brief.config import get_config


def _get_db_path() -> Path:
    """Get the database path from config (NEWS_BRIEF_DB_PATH overrides it)."""
    return Path(get_config().db_path).expanduser()


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = _get_db_path()
        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    # Delivery markers, one flat key namespace
    await db.execute("""
        CREATE TABLE IF NOT EXISTS content_cache (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            expires_at REAL NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS workflow_instances (
            id TEXT PRIMARY KEY,
            workflow_type TEXT NOT NULL,
            params TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'queued',
            output TEXT,
            error TEXT,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS workflow_steps (
            instance_id TEXT NOT NULL,
            step_name TEXT NOT NULL,
            output TEXT NOT NULL,
            completed_at TIMESTAMP NOT NULL,
            PRIMARY KEY (instance_id, step_name),
            FOREIGN KEY (instance_id) REFERENCES workflow_instances(id) ON DELETE CASCADE
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_content_cache_expires_at ON content_cache(expires_at)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_workflow_instances_status ON workflow_instances(status)
    """)

    await db.commit()


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
