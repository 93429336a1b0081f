"""
Moderation cog: AI-assisted slash commands for moderators.

- ``/summary`` asks the classifier service for a digest of the channel's
  recent messages and archives it for the status snapshot.
- ``/aipurge`` reviews recent messages retroactively against the enabled rules
  and deletes the ones it flags.

Both commands require ``manage_messages``. Responses are ephemeral.
"""

from typing import List, Tuple

import discord
from discord import Option
from discord.ext import commands

from colorgg.datatypes.audit_datatypes import BotEventEntry
from colorgg.datatypes.moderation_datatypes import ContextMessage
from colorgg.services import ModerationServices
from colorgg.ui.embeds import build_summary_embed
from colorgg.util import discord_utils
from colorgg.util.logger import get_logger

logger = get_logger("moderation_cog")

MAX_HISTORY = 100


async def collect_history(channel, limit: int) -> List[Tuple[discord.Message, ContextMessage]]:
    """Recent human messages with text, oldest first."""
    collected: List[Tuple[discord.Message, ContextMessage]] = []
    async for message in channel.history(limit=limit):
        if message.author.bot or not (message.content or "").strip():
            continue
        collected.append(
            (message, ContextMessage(author=str(message.author), content=message.content, timestamp=message.created_at))
        )
    collected.reverse()
    return collected


class ModerationCommandsCog(commands.Cog):
    """Cog containing the AI summary and purge slash commands."""

    def __init__(self, discord_bot_instance, services: ModerationServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Moderation cog loaded")

    @staticmethod
    async def _check_permissions(ctx: discord.ApplicationContext) -> bool:
        permissions = getattr(ctx.author, "guild_permissions", None)
        if ctx.guild is None or not getattr(permissions, "manage_messages", False):
            await ctx.send_followup("You do not have permission to use this command.")
            return False
        return True

    @commands.slash_command(name="summary", description="Summarize recent chat in this channel with AI.")
    @discord.default_permissions(manage_messages=True)
    async def summary(
        self,
        ctx: discord.ApplicationContext,
        count: Option(int, "Number of messages to summarize.", min_value=5, max_value=MAX_HISTORY, default=50),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not await self._check_permissions(ctx):
            return

        history = await collect_history(ctx.channel, count)
        if not history:
            await ctx.send_followup("There are no messages to summarize here.")
            return

        result = await self.services.classifier.summarize(
            [entry for _, entry in history], ctx.channel.name, ctx.guild.name
        )
        self.services.runtime.add_summary(result)
        logger.info("Summary of #%s (%d messages) requested by %s", ctx.channel.name, len(history), ctx.author)
        await ctx.send_followup(embed=build_summary_embed(result))

    @commands.slash_command(name="aipurge", description="Let the AI review recent messages and delete rule violations.")
    @discord.default_permissions(manage_messages=True)
    async def aipurge(
        self,
        ctx: discord.ApplicationContext,
        count: Option(int, "Number of messages to review.", min_value=1, max_value=MAX_HISTORY, default=50),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not await self._check_permissions(ctx):
            return

        enabled_rules = self.services.rule_store.get_enabled_rules()
        if not enabled_rules:
            await ctx.send_followup("No moderation rules are enabled.")
            return

        history = await collect_history(ctx.channel, count)
        if not history:
            await ctx.send_followup("There are no messages to review here.")
            return

        result = await self.services.classifier.analyze_for_purge(
            [entry for _, entry in history], ctx.channel.name, enabled_rules
        )

        deleted = 0
        for index in result.flagged_indexes:
            if await discord_utils.safe_delete_message(history[index][0]):
                deleted += 1

        self.services.audit_log.record(
            BotEventEntry(
                event="ai_purge",
                details=f"{ctx.author} purged #{ctx.channel.name}: {deleted}/{len(history)} messages deleted",
            )
        )
        logger.info("AI purge of #%s by %s deleted %d/%d messages", ctx.channel.name, ctx.author, deleted, len(history))
        await ctx.send_followup(
            f"🧹 Reviewed {len(history)} messages, flagged {result.total_flagged}, deleted {deleted}.\n"
            f"{result.summary}".strip()
        )


def setup(discord_bot_instance, services: ModerationServices):
    discord_bot_instance.add_cog(ModerationCommandsCog(discord_bot_instance, services))
