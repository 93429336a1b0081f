"""
Persistent storage for audit records.

The repository speaks plain record mappings, the same shape
:class:`colorgg.audit.audit_log.AuditLog` keeps in memory.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from colorgg.database.db_connection import ConnectionManager
from colorgg.database.db_schema import SchemaManager
from colorgg.util.logger import get_logger

logger = get_logger("audit_repository")

_INSERT = """
    INSERT OR IGNORE INTO audit_log (id, type, timestamp, user_id, guild_id, action, payload)
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""


def _row_values(record: Dict[str, Any]) -> tuple:
    return (
        record["id"],
        record["type"],
        record["timestamp"],
        record.get("user_id"),
        record.get("guild_id"),
        record.get("action"),
        json.dumps(record, default=str),
    )


class AuditRepository:
    """Insert and query audit records through a :class:`ConnectionManager`."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    async def initialize(self) -> None:
        async with self._connection.transaction() as conn:
            await SchemaManager.initialize_schema(conn)

    async def insert_many(self, records: Sequence[Dict[str, Any]]) -> int:
        """Persist ``records`` in one transaction; returns how many were written."""
        if not records:
            return 0
        async with self._connection.transaction() as conn:
            await conn.executemany(_INSERT, [_row_values(record) for record in records])
        logger.debug("[AUDIT REPOSITORY] Persisted %d audit records", len(records))
        return len(records)

    async def fetch_recent(self, limit: int = 100, entry_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest-first records, optionally restricted to one entry type."""
        query = "SELECT payload FROM audit_log"
        params: list[Any] = []
        if entry_type:
            query += " WHERE type = ?"
            params.append(entry_type)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        async with self._connection.read() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return [json.loads(row["payload"]) for row in rows]

    async def count(self) -> int:
        async with self._connection.read() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM audit_log")
            row = await cursor.fetchone()
        return int(row[0]) if row else 0
