"""
Per-message moderation pipeline.

Inbound guild messages pass through the ignore filters, are tracked in the
channel context, classified, turned into an action by the decision engine and
handed to the enforcement executor. Every message is handled independently;
nothing raised inside the pipeline escapes to the Discord event dispatcher.
"""

from __future__ import annotations

import traceback
from typing import Optional

import discord

from colorgg.ai.classifier import ClassifierClient
from colorgg.audit.audit_log import AuditLog
from colorgg.bot.runtime import BotRuntime
from colorgg.configuration.rule_store import RuleStore
from colorgg.datatypes.audit_datatypes import ErrorEntry
from colorgg.datatypes.moderation_datatypes import (
    Action,
    ContextMessage,
    MessageSnapshot,
    ModerationSettings,
)
from colorgg.history.channel_context import ChannelContext
from colorgg.moderation.decision_engine import decide
from colorgg.moderation.enforcement import EnforcementExecutor
from colorgg.moderation.warning_ledger import WarningLedger
from colorgg.util import discord_utils
from colorgg.util.logger import get_logger

logger = get_logger("moderation_pipeline")


def snapshot_message(message: discord.Message) -> MessageSnapshot:
    """Capture the fields of ``message`` the rest of the pipeline needs."""
    return MessageSnapshot(
        message_id=message.id,
        author_id=message.author.id,
        author_name=str(message.author),
        channel_id=message.channel.id,
        channel_name=getattr(message.channel, "name", str(message.channel.id)),
        guild_id=message.guild.id,
        guild_name=message.guild.name,
        content=message.content or "",
    )


def is_exempt(message: discord.Message, settings: ModerationSettings) -> bool:
    """True for messages that are never classified: ignored channels and ignored or trusted roles."""
    if message.channel.id in settings.ignored_channels:
        return True
    author = message.author
    return discord_utils.has_any_role(author, settings.ignored_roles) or discord_utils.has_any_role(
        author, settings.trusted_roles
    )


class ModerationPipeline:
    """Glue between the Discord message event and the moderation components."""

    def __init__(
        self,
        rule_store: RuleStore,
        classifier: ClassifierClient,
        ledger: WarningLedger,
        context: ChannelContext,
        executor: EnforcementExecutor,
        audit_log: AuditLog,
        runtime: Optional[BotRuntime] = None,
    ) -> None:
        self._rules = rule_store
        self._classifier = classifier
        self._ledger = ledger
        self._context = context
        self._executor = executor
        self._audit = audit_log
        self._runtime = runtime

    async def handle_message(self, message: discord.Message) -> Action:
        """Moderate one message and return the action that was decided."""
        if message.author.bot or message.is_system() or message.guild is None:
            return Action.none()

        if self._runtime is not None:
            self._runtime.record_message()

        try:
            return await self._moderate(message)
        except Exception as exc:
            logger.exception("[PIPELINE] Message handling failed for %s", message.id)
            self._audit.record(
                ErrorEntry(error=str(exc), context="Message handling failed", stack=traceback.format_exc())
            )
            return Action.none()

    async def _moderate(self, message: discord.Message) -> Action:
        settings = self._rules.get_settings()
        if is_exempt(message, settings):
            return Action.none()

        snapshot = snapshot_message(message)
        # Context is read before the current message joins it
        history = self._context.get(snapshot.channel_id)
        self._context.track(
            snapshot.channel_id,
            ContextMessage(author=snapshot.author_name, content=snapshot.content, timestamp=message.created_at),
        )

        if not snapshot.content.strip():
            return Action.none()

        enabled_rules = self._rules.get_enabled_rules()
        if not enabled_rules:
            return Action.none()

        verdict = await self._classifier.analyze(snapshot, history, enabled_rules, settings.moderation_style)
        action = decide(verdict, self._rules.get_rules(), self._ledger.get(snapshot.author_id), settings)
        if not action.flagged:
            return action

        logger.info(
            "[PIPELINE] %s by %s in #%s: %s (confidence %.2f, violations %s)",
            action.kind.label,
            snapshot.author_name,
            snapshot.channel_name,
            verdict.reasoning,
            verdict.confidence,
            ", ".join(verdict.violations) or "none",
        )
        taken = await self._executor.execute(message, snapshot, verdict, action, settings)
        if taken and self._runtime is not None:
            self._runtime.record_action()
        return action
