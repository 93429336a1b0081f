"""
Human-reviewed ban requests.

The most severe rule action never bans on its own. Instead:

1. **Restrain**: the offender is kicked when the bot has privilege over them,
   otherwise muted for the restraint period (7 days by default).
2. **Locate**: the configured reviewer username is looked up in the violating
   guild, then in every other guild the bot can see, then in the global user
   cache. Each guild's member fetch is bounded by a timeout and the search
   stops at the first match.
3. **Deliver**: the review embed and approve/deny buttons are sent by DM to the
   reviewer, then to a moderation channel, then to the violation channel, then
   to any channel the bot may post in, stopping at the first success.
4. **Resolve**: approve bans the offender (by raw id when they already left);
   deny lifts a mute restraint. A kick restraint is not undone on deny.

Pending requests live in memory for the lifetime of the process and are
exposed read-only to the operator console and the status snapshot.
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Dict, List, Optional, Set

import discord

from colorgg.audit.audit_log import AuditLog
from colorgg.datatypes.audit_datatypes import BotEventEntry, ErrorEntry, ModActionEntry
from colorgg.datatypes.ban_request_datatypes import (
    BanRequestKey,
    DeliveryRoute,
    PendingBanRequest,
    ResolutionResult,
    ReviewDecision,
)
from colorgg.datatypes.moderation_datatypes import (
    ActionType,
    MessageSnapshot,
    ModerationSettings,
    Rule,
    Verdict,
)
from colorgg.ui.embeds import build_ban_request_embed
from colorgg.ui.review_controls import BanReviewView
from colorgg.util import discord_utils
from colorgg.util.logger import get_logger

logger = get_logger("ban_requests")

# Checked in this order; first exact (case-insensitive) name match wins
MOD_CHANNEL_NAMES = (
    "mod-log",
    "mod-logs",
    "modlog",
    "modlogs",
    "admin",
    "admin-log",
    "admin-logs",
    "staff",
    "staff-chat",
    "moderator",
    "mod-chat",
    "ban-requests",
    "log",
    "logs",
    "bot-logs",
)


class BanRequestProtocol:
    """Restrain offenders, route ban requests to a reviewer and apply the verdict."""

    def __init__(
        self,
        bot: discord.Bot,
        audit_log: AuditLog,
        restraint_days: int = 7,
        search_timeout: float = 10.0,
    ) -> None:
        self._bot = bot
        self._audit = audit_log
        self._restraint = datetime.timedelta(days=restraint_days)
        self._search_timeout = search_timeout
        self._pending: Dict[BanRequestKey, PendingBanRequest] = {}
        # Keys approved or denied in this process, so a repeated deny is a no-op
        self._resolved: Set[BanRequestKey] = set()

    # --------------------------
    # Pending state (read-only outside this class)
    # --------------------------
    def pending_requests(self) -> List[PendingBanRequest]:
        return list(self._pending.values())

    def get_pending(self, key: BanRequestKey) -> Optional[PendingBanRequest]:
        return self._pending.get(key)

    # --------------------------
    # Phases 1-3
    # --------------------------
    async def request_ban(
        self,
        message: discord.Message,
        snapshot: MessageSnapshot,
        verdict: Verdict,
        rule: Optional[Rule],
        settings: ModerationSettings,
    ) -> PendingBanRequest:
        """Restrain the offender, deliver the review request and record it as pending."""
        guild = message.guild
        kicked = await self.restrain(message, snapshot, verdict)
        reviewer = await self.locate_reviewer(guild, settings.ban_request_user)

        request = PendingBanRequest(
            user_id=snapshot.author_id,
            guild_id=snapshot.guild_id,
            username=snapshot.author_name,
            guild_name=snapshot.guild_name,
            reason=verdict.reasoning,
            violations=list(verdict.violations),
            confidence=verdict.confidence,
            kicked=kicked,
        )
        embed = build_ban_request_embed(request, snapshot.channel_name, snapshot.content, verdict.reasoning)

        route = await self.deliver(guild, message.channel, reviewer, embed, request.key)
        request.delivery_route = route
        request.delivered = route is not DeliveryRoute.UNDELIVERED
        self._pending[request.key] = request
        self._resolved.discard(request.key)

        if request.delivered:
            logger.info("[BAN REQUEST] Request for %s delivered via %s", snapshot.author_name, route)
        else:
            logger.error("[BAN REQUEST] All delivery methods failed for %s in %s", snapshot.author_name, snapshot.guild_name)
            self._audit.record(
                ErrorEntry(
                    error=f"All delivery methods failed for ban request (user: {snapshot.author_name})",
                    context="Ban request delivery exhausted",
                )
            )

        self._audit.record(
            ModActionEntry(
                action=ActionType.REQUEST_BAN.value,
                user_id=snapshot.author_id,
                username=snapshot.author_name,
                guild_id=snapshot.guild_id,
                guild_name=snapshot.guild_name,
                channel_id=snapshot.channel_id,
                channel_name=snapshot.channel_name,
                message_content=snapshot.content,
                reason=verdict.reasoning,
                rule_id=rule.id if rule else verdict.primary_violation,
                severity="critical",
                ai_confidence=verdict.confidence,
            )
        )
        return request

    async def restrain(self, message: discord.Message, snapshot: MessageSnapshot, verdict: Verdict) -> bool:
        """Kick the offender if possible, otherwise mute them. Returns True when kicked."""
        guild = message.guild
        member = await discord_utils.resolve_member(guild, snapshot.author_id)
        if member is None:
            logger.warning("[BAN REQUEST] %s is no longer in %s, nothing to restrain", snapshot.author_name, snapshot.guild_name)
            return False

        if discord_utils.can_moderate(guild, member, "kick_members"):
            try:
                await member.kick(reason=f"[ColorGG] Critical violation, ban request pending: {verdict.reasoning}")
            except discord.Forbidden:
                logger.warning("[BAN REQUEST] Kick of %s was refused, falling back to a mute", snapshot.author_name)
            except Exception as exc:
                logger.error("[BAN REQUEST] Kick of %s failed: %s", snapshot.author_name, exc)
            else:
                self._audit.record(
                    ModActionEntry(
                        action=ActionType.KICK.value,
                        user_id=snapshot.author_id,
                        username=snapshot.author_name,
                        guild_id=snapshot.guild_id,
                        guild_name=snapshot.guild_name,
                        channel_id=snapshot.channel_id,
                        channel_name=snapshot.channel_name,
                        message_content=snapshot.content,
                        reason=f"[Auto-kick before ban request] {verdict.reasoning}",
                        rule_id=verdict.primary_violation,
                        severity="critical",
                        ai_confidence=verdict.confidence,
                    )
                )
                try:
                    await message.channel.send(
                        f"👢 **{snapshot.author_name}** has been kicked for a critical violation. "
                        "A ban request has been sent for review."
                    )
                except Exception as exc:
                    logger.debug("[BAN REQUEST] Could not announce kick: %s", exc)
                return True

        try:
            await member.timeout(
                discord.utils.utcnow() + self._restraint,
                reason=f"[ColorGG] Pending ban review: {verdict.reasoning}",
            )
            logger.info("[BAN REQUEST] Muted %s pending ban review", snapshot.author_name)
        except Exception as exc:
            logger.error("[BAN REQUEST] Could not restrain %s: %s", snapshot.author_name, exc)
            self._audit.record(ErrorEntry(error=str(exc), context="Failed to restrain user before ban request"))
        return False

    async def locate_reviewer(self, guild: discord.Guild, username: str):
        """Find the reviewer by username, display name or global name; None when unset or unknown."""
        if not username:
            logger.warning("[BAN REQUEST] No ban reviewer configured")
            return None

        found = await self._search_guild(guild, username)
        if found is not None:
            return found

        for other in self._bot.guilds:
            if other.id == guild.id:
                continue
            found = await self._search_guild(other, username)
            if found is not None:
                return found

        found = next((user for user in self._bot.users if discord_utils.matches_username(user, username)), None)
        if found is None:
            logger.warning("[BAN REQUEST] Reviewer %r not found in any guild or the user cache", username)
        return found

    async def _search_guild(self, guild: discord.Guild, username: str):
        async def scan():
            async for member in guild.fetch_members(limit=None):
                if discord_utils.matches_username(member, username):
                    return member
            return None

        try:
            return await asyncio.wait_for(scan(), timeout=self._search_timeout)
        except asyncio.TimeoutError:
            logger.warning("[BAN REQUEST] Member fetch in %s timed out after %.0fs", guild.name, self._search_timeout)
        except Exception as exc:
            logger.warning("[BAN REQUEST] Failed to fetch members of %s: %s", guild.name, exc)
        return None

    async def deliver(
        self,
        guild: discord.Guild,
        violation_channel,
        reviewer,
        embed: discord.Embed,
        key: BanRequestKey,
    ) -> DeliveryRoute:
        """Try each delivery route in order and return the one that succeeded."""
        ping = f"<@{reviewer.id}>: **Ban request requires your attention:**" if reviewer is not None else None
        fallback = "⚠️ **Ban request for admin review:**"
        attempted: set[int] = set()

        if reviewer is not None and await self._send(reviewer, DeliveryRoute.DIRECT_MESSAGE, embed, key):
            return DeliveryRoute.DIRECT_MESSAGE

        mod_channel = discord_utils.find_channel_by_names(guild, MOD_CHANNEL_NAMES)
        if mod_channel is not None:
            attempted.add(mod_channel.id)
            if await self._send(mod_channel, DeliveryRoute.MOD_CHANNEL, embed, key, content=ping or fallback):
                return DeliveryRoute.MOD_CHANNEL

        if violation_channel is not None:
            attempted.add(violation_channel.id)
            if await self._send(violation_channel, DeliveryRoute.VIOLATION_CHANNEL, embed, key, content=ping or fallback):
                return DeliveryRoute.VIOLATION_CHANNEL

        any_channel = next(
            (
                channel
                for channel in getattr(guild, "text_channels", [])
                if channel.id not in attempted and discord_utils.can_send(channel, guild)
            ),
            None,
        )
        if any_channel is not None and await self._send(
            any_channel,
            DeliveryRoute.ANY_CHANNEL,
            embed,
            key,
            content="⚠️ **Ban request, all other delivery methods failed:**",
        ):
            return DeliveryRoute.ANY_CHANNEL

        return DeliveryRoute.UNDELIVERED

    async def _send(self, target, route: DeliveryRoute, embed: discord.Embed, key: BanRequestKey, content: Optional[str] = None) -> bool:
        try:
            await target.send(content=content, embed=embed, view=BanReviewView(key))
        except Exception as exc:
            logger.warning("[BAN REQUEST] Delivery via %s failed: %s", route, exc)
            return False
        self._audit.record(
            BotEventEntry(
                event=f"ban_request_{route}",
                details=f"Ban request for user {key.user_id} sent via {route}",
            )
        )
        return True

    # --------------------------
    # Phase 4
    # --------------------------
    def is_authorized_reviewer(self, user, settings: ModerationSettings) -> bool:
        """The configured reviewer, or any member holding ``ban_members``, may resolve requests."""
        if discord_utils.matches_username(user, settings.ban_request_user):
            return True
        permissions = getattr(user, "guild_permissions", None)
        return bool(getattr(permissions, "ban_members", False))

    async def _resolve_guild(self, guild_id: int) -> Optional[discord.Guild]:
        guild = self._bot.get_guild(guild_id)
        if guild is not None:
            return guild
        try:
            return await self._bot.fetch_guild(guild_id)
        except Exception as exc:
            logger.warning("[BAN REQUEST] Could not resolve guild %s: %s", guild_id, exc)
            return None

    async def approve(self, key: BanRequestKey) -> ResolutionResult:
        """Ban the offender; on failure the pending entry is kept for another attempt."""
        guild = await self._resolve_guild(key.guild_id)
        if guild is None:
            return ResolutionResult(ReviewDecision.APPROVE, key, False, "⚠️ I am no longer in that server, so I cannot ban this user.")

        pending = self._pending.get(key)
        member = await discord_utils.resolve_member(guild, key.user_id)
        try:
            if member is not None:
                if not discord_utils.can_moderate(guild, member, "ban_members"):
                    return self._approve_failed(key, "I do not have permission to ban this member.")
                username = str(member)
                await member.ban(reason="[ColorGG] Ban approved by admin")
                reason = "Ban approved by admin"
            else:
                username = pending.username if pending else "Unknown (left server)"
                await guild.ban(discord.Object(id=key.user_id), reason="[ColorGG] Ban approved by admin (user already left)")
                reason = "Ban approved by admin (user already left)"
        except discord.Forbidden:
            return self._approve_failed(key, "I lack the ban permission in this server.")
        except discord.NotFound:
            return self._approve_failed(key, f"Unknown user `{key.user_id}`.")
        except Exception as exc:
            return self._approve_failed(key, str(exc))

        self._pending.pop(key, None)
        self._resolved.add(key)
        logger.info("[BAN REQUEST] Ban approved for %s in %s", username, guild.name)
        self._audit.record(
            ModActionEntry(
                action=ActionType.BAN.value,
                user_id=key.user_id,
                username=username,
                guild_id=key.guild_id,
                guild_name=guild.name,
                reason=reason,
                severity="critical",
            )
        )
        return ResolutionResult(ReviewDecision.APPROVE, key, True, f"✅ **Ban approved**: {username} has been banned.")

    def _approve_failed(self, key: BanRequestKey, reason: str) -> ResolutionResult:
        logger.warning("[BAN REQUEST] Could not ban user %s in guild %s: %s", key.user_id, key.guild_id, reason)
        return ResolutionResult(ReviewDecision.APPROVE, key, False, f"⚠️ Could not ban user: {reason}")

    async def deny(self, key: BanRequestKey) -> ResolutionResult:
        """Clear the request and lift a mute restraint.

        A request unknown to this process (the buttons outlive restarts) still
        has its mute lifted. Denying a request resolved here before is a no-op.
        """
        if key in self._resolved:
            return ResolutionResult(
                ReviewDecision.DENY,
                key,
                True,
                "This ban request has already been resolved.",
                already_resolved=True,
            )

        pending = self._pending.pop(key, None)
        self._resolved.add(key)
        guild = await self._resolve_guild(key.guild_id)
        username = pending.username if pending else f"User {key.user_id}"
        guild_name = pending.guild_name if pending else getattr(guild, "name", str(key.guild_id))

        if pending is not None and pending.kicked:
            logger.info("[BAN REQUEST] Ban denied for %s; the kick restraint stays in effect", username)
            message = f"❌ **Ban denied**: {username} was kicked earlier and may rejoin."
        else:
            if pending is None:
                logger.info(
                    "[BAN REQUEST] Deny for untracked request (user %s, guild %s), lifting any timeout",
                    key.user_id,
                    key.guild_id,
                )
            username, message = await self._lift_restraint(guild, key, username)

        self._audit.record(
            ModActionEntry(
                action=ActionType.BAN_DENIED.value,
                user_id=key.user_id,
                username=username,
                guild_id=key.guild_id,
                guild_name=guild_name,
                reason="Ban request denied by admin",
                severity="critical",
            )
        )
        return ResolutionResult(ReviewDecision.DENY, key, True, message)

    async def _lift_restraint(self, guild: Optional[discord.Guild], key: BanRequestKey, username: str):
        member = await discord_utils.resolve_member(guild, key.user_id) if guild is not None else None
        if member is None:
            return username, f"❌ **Ban denied**: {username} is no longer in the server."
        username = str(member)
        try:
            await member.remove_timeout(reason="[ColorGG] Ban request denied by admin")
        except Exception as exc:
            logger.error("[BAN REQUEST] Could not remove timeout from %s: %s", username, exc)
            return username, f"❌ Ban denied, but I could not remove the timeout: {exc}"
        return username, "❌ **Ban denied**: User timeout has been removed."
