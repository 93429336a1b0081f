"""
Audit store schema.

Entries are stored as one row each. The columns used for filtering are
broken out; the complete entry is kept as JSON in ``payload``.
"""

import aiosqlite

from colorgg.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the audit tables and indexes."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info("[SCHEMA] Audit schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS audit_log (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                user_id INTEGER,
                guild_id INTEGER,
                action TEXT,
                payload TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_timestamp ON audit_log(timestamp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_type ON audit_log(type, timestamp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_user ON audit_log(user_id, guild_id)")
