"""
Construction of the moderation object graph.

Every stateful component (warning ledger, channel context, pending ban
requests, audit buffer) is created here once and handed to its consumers by
constructor. Cogs and the console receive the finished
:class:`ModerationServices` container instead of importing module globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import discord

from colorgg.ai.classifier import ClassifierClient
from colorgg.audit.audit_log import AuditLog
from colorgg.bot.runtime import BotRuntime
from colorgg.configuration.app_configuration import AppConfig
from colorgg.configuration.rule_store import RuleStore
from colorgg.database.audit_repository import AuditRepository
from colorgg.database.db_connection import ConnectionManager
from colorgg.history.channel_context import ChannelContext
from colorgg.moderation.ban_requests import BanRequestProtocol
from colorgg.moderation.enforcement import EnforcementExecutor
from colorgg.moderation.moderation_pipeline import ModerationPipeline
from colorgg.moderation.warning_ledger import WarningLedger
from colorgg.util.logger import get_logger

logger = get_logger("services")


@dataclass
class ModerationServices:
    config: AppConfig
    rule_store: RuleStore
    audit_log: AuditLog
    connection: ConnectionManager
    classifier: ClassifierClient
    ledger: WarningLedger
    context: ChannelContext
    ban_requests: BanRequestProtocol
    executor: EnforcementExecutor
    runtime: BotRuntime
    pipeline: ModerationPipeline

    async def open_audit_store(self) -> None:
        """Open the audit database and start persisting records to it."""
        await self.connection.open(self.config.audit_db_path)
        repository = AuditRepository(self.connection)
        await repository.initialize()
        self.audit_log.attach_repository(repository)

    async def close(self) -> None:
        try:
            await self.audit_log.flush()
        finally:
            await self.connection.close()


def build_services(bot: discord.Bot, config: AppConfig, ai_client: Optional[Any] = None) -> ModerationServices:
    """Wire every moderation component for ``bot`` from ``config``.

    ``ai_client`` replaces the OpenAI client, which is how tests inject a fake.
    """
    audit_log = AuditLog(memory_limit=config.audit_memory_limit)
    rule_store = RuleStore(config.store_path, config.defaults_path)
    ledger = WarningLedger()
    context = ChannelContext(max_messages=config.context_size)
    classifier = ClassifierClient(config.ai_settings, audit_log, client=ai_client)
    ban_requests = BanRequestProtocol(
        bot,
        audit_log,
        restraint_days=config.restraint_timeout_days,
        search_timeout=config.reviewer_search_timeout,
    )
    executor = EnforcementExecutor(ledger, audit_log, ban_requests)
    runtime = BotRuntime(bot, ban_requests, summary_history=config.summary_history)
    pipeline = ModerationPipeline(rule_store, classifier, ledger, context, executor, audit_log, runtime)

    logger.info("[SERVICES] Moderation services ready (%d rules loaded)", len(rule_store.get_rules()))
    return ModerationServices(
        config=config,
        rule_store=rule_store,
        audit_log=audit_log,
        connection=ConnectionManager(),
        classifier=classifier,
        ledger=ledger,
        context=context,
        ban_requests=ban_requests,
        executor=executor,
        runtime=runtime,
        pipeline=pipeline,
    )
