"""Message listener Cog for ColorGG.

Feeds every guild message into the moderation pipeline.
"""

import discord
from discord.ext import commands

from colorgg.datatypes.moderation_datatypes import ActionType
from colorgg.services import ModerationServices
from colorgg.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """Cog responsible for handing new messages to the moderation pipeline."""

    def __init__(self, discord_bot_instance, services: ModerationServices):
        self.bot = discord_bot_instance
        self.services = services
        logger.info("Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message):
        """Moderate a new message. The pipeline never raises."""
        action = await self.services.pipeline.handle_message(message)
        if action.kind is not ActionType.NONE:
            logger.debug("Message %s resolved to %s", message.id, action.kind)


def setup(discord_bot_instance, services: ModerationServices):
    discord_bot_instance.add_cog(MessageListenerCog(discord_bot_instance, services))
