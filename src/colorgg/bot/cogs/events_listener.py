"""Event listener Cog for ColorGG.

This cog handles bot lifecycle events, member joins and application command
errors. Lifecycle events are written to the audit trail and published on the
status feed.
"""

import discord
from discord.ext import commands

from colorgg.datatypes.audit_datatypes import BotEventEntry
from colorgg.services import ModerationServices
from colorgg.util.logger import get_logger

logger = get_logger("events_listener_cog")


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and command error handlers."""

    def __init__(self, discord_bot_instance, services: ModerationServices):
        self.bot = discord_bot_instance
        self.services = services
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """Set the presence and record that the bot is serving its guilds."""
        if not self.bot.user:
            logger.warning("Bot partially connected, but user information not yet available.")
            return

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name="🛡️ Moderating | ColorGG"),
        )
        logger.info("Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)
        self.services.audit_log.record(
            BotEventEntry(
                event="ready",
                details=f"Logged in as {self.bot.user}, serving {len(self.bot.guilds)} guilds",
            )
        )
        self.services.runtime.emit("ready")

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member):
        self.services.audit_log.record(
            BotEventEntry(event="member_join", details=f"{member} joined {member.guild.name}")
        )

    @commands.Cog.listener(name="on_application_command_error")
    async def on_application_command_error(self, application_context: discord.ApplicationContext, error: Exception):
        """Log the failure and tell the invoker something went wrong."""
        if isinstance(error, commands.CommandNotFound):
            return

        command_name = getattr(application_context.command, "name", "<unknown>")
        logger.error("Error in command '%s': %s", command_name, error, exc_info=error)

        error_message = "A :bug: showed up while running this command."
        try:
            await application_context.respond(error_message, ephemeral=True)
        except discord.InteractionResponded:
            await application_context.followup.send(error_message, ephemeral=True)


def setup(discord_bot_instance, services: ModerationServices):
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, services))
