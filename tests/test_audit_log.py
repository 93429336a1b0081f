"""Tests for the audit log and its SQLite repository."""

import asyncio
import datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from colorgg.audit.audit_log import AuditLog
from colorgg.database.audit_repository import AuditRepository
from colorgg.database.db_connection import ConnectionManager
from colorgg.datatypes.audit_datatypes import AIAnalysisEntry, BotEventEntry, ErrorEntry, ModActionEntry


def mod_action(action="warn", user_id=1, guild_id=10, severity="low", rule_id="spam") -> ModActionEntry:
    return ModActionEntry(
        action=action,
        user_id=user_id,
        username=f"user{user_id}",
        guild_id=guild_id,
        guild_name="Test Guild",
        reason="test",
        rule_id=rule_id,
        severity=severity,
    )


class TestAuditLogMemory:
    def test_record_stamps_id_timestamp_and_type(self):
        log = AuditLog()

        record = log.record(BotEventEntry(event="ready", details="hello"))

        assert record["type"] == "bot_event"
        assert record["event"] == "ready"
        assert len(record["id"]) == 12
        assert datetime.datetime.fromisoformat(record["timestamp"]).tzinfo is not None

    def test_each_entry_shape_has_its_discriminator(self):
        log = AuditLog()
        log.record(mod_action())
        log.record(AIAnalysisEntry(user_id=1, flagged=True, violations=["spam"], confidence=0.9))
        log.record(BotEventEntry(event="ready"))
        log.record(ErrorEntry(error="boom", context="test"))

        assert [r["type"] for r in log.recent()] == ["mod_action", "ai_analysis", "bot_event", "error"]

    def test_memory_is_bounded(self):
        log = AuditLog(memory_limit=3)
        for i in range(5):
            log.record(BotEventEntry(event=f"e{i}"))

        assert len(log) == 3
        assert [r["event"] for r in log.recent()] == ["e2", "e3", "e4"]

    def test_get_logs_filters(self):
        log = AuditLog()
        log.record(mod_action("warn", user_id=1, guild_id=10, severity="low"))
        log.record(mod_action("kick", user_id=2, guild_id=10, severity="high"))
        log.record(mod_action("timeout", user_id=1, guild_id=11, severity="medium"))
        log.record(BotEventEntry(event="ready"))

        assert len(log.get_logs(entry_type="mod_action")) == 3
        assert [r["action"] for r in log.get_logs(user_id=1)] == ["warn", "timeout"]
        assert [r["action"] for r in log.get_logs(guild_id=10)] == ["warn", "kick"]
        assert [r["action"] for r in log.get_logs(severity="high")] == ["kick"]
        assert [r["action"] for r in log.get_logs(entry_type="mod_action", limit=1)] == ["timeout"]
        future = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=5)
        assert log.get_logs(since=future) == []

    def test_stats(self):
        log = AuditLog()
        log.record(mod_action("warn", rule_id="spam", severity="low"))
        log.record(mod_action("warn", rule_id="spam", severity="low"))
        log.record(mod_action("kick", rule_id=None, severity="high"))
        log.record(AIAnalysisEntry(flagged=True))
        log.record(AIAnalysisEntry(flagged=False))

        stats = log.stats()

        assert stats["total"] == 5
        assert stats["last_24h"]["actions"] == 3
        assert stats["last_24h"]["by_action"] == {"warn": 2, "kick": 1}
        assert stats["last_24h"]["flagged"] == 1
        assert stats["last_24h"]["clean"] == 1
        assert stats["by_rule"] == {"spam": 2, "unknown": 1}
        assert stats["by_severity"] == {"low": 2, "high": 1}

    def test_records_are_published_to_the_feed(self):
        log = AuditLog()
        seen = []
        log.feed.add_listener(seen.append)

        log.record(BotEventEntry(event="ready"))

        assert seen[0]["event"] == "ready"

    def test_failing_listener_does_not_break_recording(self):
        log = AuditLog()

        def broken(record):
            raise RuntimeError("listener down")

        log.feed.add_listener(broken)
        log.record(BotEventEntry(event="ready"))

        assert len(log) == 1

    def test_records_outside_loop_wait_for_flush(self):
        repository = AsyncMock()
        log = AuditLog(repository=repository)
        log.record(BotEventEntry(event="early"))
        assert log.pending_writes == 1

        asyncio.run(log.flush())

        repository.insert_many.assert_awaited_once()
        assert log.pending_writes == 0

    def test_clear_memory(self):
        log = AuditLog()
        log.record(BotEventEntry(event="ready"))
        log.clear_memory()
        assert len(log) == 0


@pytest_asyncio.fixture
async def repository(tmp_path):
    connection = ConnectionManager()
    await connection.open(tmp_path / "audit.db")
    repo = AuditRepository(connection)
    await repo.initialize()
    yield repo
    await connection.close()


class TestAuditPersistence:
    @pytest.mark.asyncio
    async def test_records_are_written_to_sqlite(self, repository):
        log = AuditLog(repository=repository)
        log.record(mod_action("warn"))
        log.record(ErrorEntry(error="boom"))

        await log.flush()

        assert await repository.count() == 2
        errors = await repository.fetch_recent(entry_type="error")
        assert errors[0]["error"] == "boom"
        assert log.pending_writes == 0

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_ignored(self, repository):
        record = AuditLog().record(BotEventEntry(event="ready"))

        await repository.insert_many([record])
        await repository.insert_many([record])

        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_fetch_recent_is_newest_first(self, repository):
        log = AuditLog(repository=repository)
        first = log.record(BotEventEntry(event="first"))
        second = log.record(BotEventEntry(event="second"))
        second["timestamp"] = (
            datetime.datetime.fromisoformat(first["timestamp"]) + datetime.timedelta(seconds=1)
        ).isoformat()
        await log.flush()

        rows = await repository.fetch_recent(limit=1)

        assert [row["event"] for row in rows] == ["second"]

    @pytest.mark.asyncio
    async def test_persistence_failure_is_contained(self):
        failing = AsyncMock()
        failing.insert_many.side_effect = RuntimeError("disk full")
        log = AuditLog(repository=failing)

        record = log.record(BotEventEntry(event="ready"))
        await log.flush()

        assert record["event"] == "ready"
        assert len(log) == 1
