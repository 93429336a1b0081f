"""
Structured audit trail of moderation decisions and bot activity.

``AuditLog.record`` is fire-and-forget: it stamps the entry with an id and a
UTC timestamp, keeps it in a bounded in-memory buffer, publishes it on the
audit feed and, when a repository is attached and an event loop is running,
schedules an insert into SQLite. Persistence failures are logged and never
reach the caller. ``flush`` awaits every write still in flight.
"""

from __future__ import annotations

import asyncio
import datetime
import uuid
from collections import Counter, deque
from typing import Any, Deque, Dict, List, Optional, Set

from colorgg.database.audit_repository import AuditRepository
from colorgg.datatypes.audit_datatypes import AuditEntry, AuditEntryType
from colorgg.events.event_feed import EventFeed
from colorgg.util.logger import get_logger

logger = get_logger("audit")

AuditRecord = Dict[str, Any]

DEFAULT_MEMORY_LIMIT = 5000


class AuditLog:
    """In-memory audit buffer with optional SQLite persistence."""

    def __init__(self, memory_limit: int = DEFAULT_MEMORY_LIMIT, repository: Optional[AuditRepository] = None) -> None:
        self._records: Deque[AuditRecord] = deque(maxlen=memory_limit)
        self._repository = repository
        self._unsaved: List[AuditRecord] = []
        self._writes: Set[asyncio.Task] = set()
        self.feed: EventFeed[AuditRecord] = EventFeed("audit")

    def attach_repository(self, repository: AuditRepository) -> None:
        self._repository = repository

    def record(self, entry: AuditEntry) -> AuditRecord:
        """Stamp, buffer, publish and schedule persistence of ``entry``."""
        record = entry.to_record()
        record["id"] = uuid.uuid4().hex[:12]
        record["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat()

        self._records.append(record)
        if entry.entry_type is AuditEntryType.MOD_ACTION:
            logger.info(
                "[AUDIT] %s on %s (%s) in %s: %s",
                record.get("action"),
                record.get("username"),
                record.get("user_id"),
                record.get("guild_name"),
                record.get("reason"),
            )
        else:
            logger.debug("[AUDIT] %s recorded: %s", record["type"], record["id"])

        self.feed.publish(record)
        self._schedule_persist(record)
        return record

    # --------------------------
    # Persistence
    # --------------------------
    def _schedule_persist(self, record: AuditRecord) -> None:
        if self._repository is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._unsaved.append(record)
            return
        task = loop.create_task(self._persist([record]))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _persist(self, records: List[AuditRecord]) -> None:
        if self._repository is None:
            return
        try:
            await self._repository.insert_many(records)
        except Exception as exc:
            logger.error("[AUDIT] Failed to persist %d audit record(s): %s", len(records), exc)

    async def flush(self) -> None:
        """Wait for scheduled writes and persist records buffered outside the event loop."""
        if self._unsaved:
            records, self._unsaved = self._unsaved, []
            await self._persist(records)
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    @property
    def pending_writes(self) -> int:
        return len(self._writes) + len(self._unsaved)

    # --------------------------
    # Queries
    # --------------------------
    def get_logs(
        self,
        *,
        entry_type: Optional[str] = None,
        guild_id: Optional[int] = None,
        user_id: Optional[int] = None,
        severity: Optional[str] = None,
        since: Optional[datetime.datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AuditRecord]:
        """Filter the in-memory buffer; results are oldest first, ``limit`` keeps the newest."""
        records = list(self._records)
        if entry_type:
            records = [r for r in records if r["type"] == entry_type]
        if guild_id is not None:
            records = [r for r in records if r.get("guild_id") == guild_id]
        if user_id is not None:
            records = [r for r in records if r.get("user_id") == user_id]
        if severity:
            records = [r for r in records if r.get("severity") == severity]
        if since is not None:
            cutoff = since.isoformat()
            records = [r for r in records if r["timestamp"] >= cutoff]
        if limit:
            records = records[-limit:]
        return records

    def recent(self, count: int = 100) -> List[AuditRecord]:
        return list(self._records)[-count:] if count > 0 else []

    def stats(self) -> Dict[str, Any]:
        """Totals for the last 24 hours plus per-rule and per-severity action counts."""
        cutoff = (datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(hours=24)).isoformat()
        recent = [r for r in self._records if r["timestamp"] >= cutoff]
        actions = [r for r in recent if r["type"] == AuditEntryType.MOD_ACTION.value]
        analyses = [r for r in recent if r["type"] == AuditEntryType.AI_ANALYSIS.value]
        all_actions = [r for r in self._records if r["type"] == AuditEntryType.MOD_ACTION.value]

        return {
            "total": len(self._records),
            "last_24h": {
                "total": len(recent),
                "actions": len(actions),
                "by_action": dict(Counter(r.get("action") for r in actions)),
                "flagged": sum(1 for r in analyses if r.get("flagged")),
                "clean": sum(1 for r in analyses if not r.get("flagged")),
            },
            "by_rule": dict(Counter(r.get("rule_id") or "unknown" for r in all_actions)),
            "by_severity": dict(Counter(r.get("severity") or "unknown" for r in all_actions)),
        }

    def clear_memory(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
