"""
Enforcement executor: carries out a decided action against Discord.

Each enforceable action kind has exactly one handler. Handlers run once per
message with no retries; a rejected platform call is logged, recorded as an
error in the audit trail where it defeats the action, and never propagates.

Every kind except ``warn`` deletes the triggering message before its own
step. A flagged message whose rule action is ``none`` is only deleted. Every
landed action other than a warning is followed by a best-effort DM to the
offender when ``dm_on_action`` is enabled.
"""

from __future__ import annotations

import datetime
from typing import Awaitable, Callable, Dict, Optional

import discord

from colorgg.audit.audit_log import AuditLog
from colorgg.datatypes.audit_datatypes import ErrorEntry, ModActionEntry
from colorgg.datatypes.moderation_datatypes import (
    ENFORCEABLE_ACTIONS,
    Action,
    ActionType,
    MessageSnapshot,
    ModerationSettings,
    Verdict,
)
from colorgg.moderation.ban_requests import BanRequestProtocol
from colorgg.moderation.warning_ledger import WarningLedger
from colorgg.ui.embeds import build_action_notice_embed
from colorgg.util import discord_utils
from colorgg.util.logger import get_logger

logger = get_logger("enforcement")

Handler = Callable[[discord.Message, MessageSnapshot, Verdict, Action, ModerationSettings], Awaitable[bool]]

# Audit action recorded when a flagged message is only removed
REMOVED = "delete"

# Severity recorded when the action was not driven by a configured rule
DEFAULT_SEVERITY = {
    ActionType.WARN: "low",
    ActionType.TIMEOUT: "medium",
    ActionType.KICK: "high",
    ActionType.REQUEST_BAN: "critical",
}


class EnforcementExecutor:
    """Dispatch decided actions to their handlers."""

    def __init__(self, ledger: WarningLedger, audit_log: AuditLog, ban_requests: BanRequestProtocol) -> None:
        self._ledger = ledger
        self._audit = audit_log
        self._ban_requests = ban_requests
        self._handlers: Dict[ActionType, Handler] = {
            ActionType.WARN: self._warn,
            ActionType.TIMEOUT: self._timeout,
            ActionType.KICK: self._kick,
            ActionType.REQUEST_BAN: self._request_ban,
        }
        missing = ENFORCEABLE_ACTIONS - self._handlers.keys()
        if missing:
            raise RuntimeError(f"No enforcement handler for {sorted(str(kind) for kind in missing)}")

    async def execute(
        self,
        message: discord.Message,
        snapshot: MessageSnapshot,
        verdict: Verdict,
        action: Action,
        settings: ModerationSettings,
    ) -> bool:
        """Run the handler for ``action.kind``; returns True when the action landed."""
        handler = self._handlers.get(action.kind)
        if handler is None and not action.removes_only:
            return False

        deleted = False
        if action.deletes_message:
            deleted = await discord_utils.safe_delete_message(message)
            if not deleted:
                logger.warning("[ENFORCEMENT] Could not delete message %s, continuing with %s", snapshot.message_id, action.kind)

        if action.removes_only:
            taken = self._removed(snapshot, verdict, action, deleted)
        else:
            taken = await handler(message, snapshot, verdict, action, settings)

        if taken and action.kind is not ActionType.WARN and settings.dm_on_action:
            await discord_utils.send_dm(
                message.author,
                embed=build_action_notice_embed(action.kind, snapshot.guild_name, verdict.reasoning, action.duration),
            )
        return taken

    # --------------------------
    # Handlers
    # --------------------------
    async def _warn(self, message, snapshot, verdict, action, settings) -> bool:
        count = self._ledger.add(snapshot.author_id)
        logger.info("[ENFORCEMENT] Warned %s (%d warning(s))", snapshot.author_name, count)

        if verdict.reply_message:
            try:
                await message.reply(f"⚠️ {verdict.reply_message}", mention_author=True)
            except discord.Forbidden:
                logger.warning("[ENFORCEMENT] No permission to reply in #%s", snapshot.channel_name)
            except Exception as exc:
                logger.error("[ENFORCEMENT] Failed to send warning reply in #%s: %s", snapshot.channel_name, exc)

        self._record(snapshot, verdict, action)
        return True

    async def _timeout(self, message, snapshot, verdict, action, settings) -> bool:
        member = await discord_utils.resolve_member(message.guild, snapshot.author_id)
        if member is None:
            logger.warning("[ENFORCEMENT] %s left before the timeout could be applied", snapshot.author_name)
            return False

        until = discord.utils.utcnow() + datetime.timedelta(seconds=action.duration)
        try:
            await member.timeout(until, reason=f"[ColorGG] {verdict.reasoning}")
        except discord.Forbidden:
            return self._failed(snapshot, "Timeout failed", "missing permission to time out member")
        except Exception as exc:
            return self._failed(snapshot, "Timeout failed", str(exc))

        if verdict.reply_message:
            await self._announce(message, f"🔇 {snapshot.author_name} has been timed out. {verdict.reply_message}")

        self._record(snapshot, verdict, action, duration=action.duration)
        return True

    async def _kick(self, message, snapshot, verdict, action, settings) -> bool:
        member = await discord_utils.resolve_member(message.guild, snapshot.author_id)
        if member is None:
            logger.warning("[ENFORCEMENT] %s left before the kick could be applied", snapshot.author_name)
            return False
        if not discord_utils.can_moderate(message.guild, member, "kick_members"):
            return self._failed(snapshot, "Kick skipped", "insufficient privilege over member")

        try:
            await member.kick(reason=f"[ColorGG] {verdict.reasoning}")
        except discord.Forbidden:
            return self._failed(snapshot, "Kick failed", "missing permission to kick member")
        except Exception as exc:
            return self._failed(snapshot, "Kick failed", str(exc))

        await self._announce(message, f"👢 {snapshot.author_name} has been kicked. Reason: {verdict.reasoning}")
        self._record(snapshot, verdict, action)
        return True

    async def _request_ban(self, message, snapshot, verdict, action, settings) -> bool:
        await self._ban_requests.request_ban(message, snapshot, verdict, action.rule, settings)
        return True

    def _removed(self, snapshot, verdict, action, deleted: bool) -> bool:
        if not deleted:
            return self._failed(snapshot, "Message removal failed", "could not delete flagged message")
        logger.info("[ENFORCEMENT] Removed flagged message from %s in #%s", snapshot.author_name, snapshot.channel_name)
        self._record(snapshot, verdict, action)
        return True

    # --------------------------
    # Helpers
    # --------------------------
    async def _announce(self, message: discord.Message, content: str) -> None:
        try:
            await message.channel.send(content)
        except discord.Forbidden:
            logger.warning("[ENFORCEMENT] No permission to announce in #%s", getattr(message.channel, "name", "?"))
        except Exception as exc:
            logger.error("[ENFORCEMENT] Failed to announce action: %s", exc)

    def _failed(self, snapshot: MessageSnapshot, context: str, error: str) -> bool:
        logger.error("[ENFORCEMENT] %s for %s in %s: %s", context, snapshot.author_name, snapshot.guild_name, error)
        self._audit.record(ErrorEntry(error=error, context=context))
        return False

    def _record(
        self,
        snapshot: MessageSnapshot,
        verdict: Verdict,
        action: Action,
        duration: Optional[int] = None,
    ) -> None:
        rule = action.rule
        self._audit.record(
            ModActionEntry(
                action=REMOVED if action.removes_only else action.kind.value,
                user_id=snapshot.author_id,
                username=snapshot.author_name,
                guild_id=snapshot.guild_id,
                guild_name=snapshot.guild_name,
                channel_id=snapshot.channel_id,
                channel_name=snapshot.channel_name,
                message_content=snapshot.content,
                reason=verdict.reasoning,
                rule_id=rule.id if rule else verdict.primary_violation,
                severity=rule.severity.value if rule else DEFAULT_SEVERITY.get(action.kind),
                ai_confidence=verdict.confidence,
                duration=duration,
            )
        )
