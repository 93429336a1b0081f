"""Ban review Cog for ColorGG.

Routes clicks on the approve/deny buttons of ban requests to the ban request
protocol. Routing goes by ``custom_id`` so controls sent before a restart keep
working.
"""

import discord
from discord.ext import commands

from colorgg.datatypes.ban_request_datatypes import BanRequestKey, ResolutionResult, ReviewDecision
from colorgg.services import ModerationServices
from colorgg.util.logger import get_logger

logger = get_logger("ban_review_cog")


class BanReviewCog(commands.Cog):
    """Cog resolving ban requests from reviewer button presses."""

    def __init__(self, discord_bot_instance, services: ModerationServices):
        self.bot = discord_bot_instance
        self.services = services
        logger.info("Ban review cog loaded")

    @commands.Cog.listener(name="on_interaction")
    async def on_interaction(self, interaction: discord.Interaction):
        if interaction.type is not discord.InteractionType.component:
            return
        parsed = BanRequestKey.parse_custom_id(interaction.custom_id)
        if parsed is None:
            return
        decision, key = parsed

        settings = self.services.rule_store.get_settings()
        if not self.services.ban_requests.is_authorized_reviewer(interaction.user, settings):
            logger.warning("Unauthorized ban review attempt by %s for user %s", interaction.user, key.user_id)
            await interaction.response.send_message(
                "You are not allowed to review ban requests.", ephemeral=True
            )
            return

        logger.info("%s pressed %s for user %s in guild %s", interaction.user, decision, key.user_id, key.guild_id)
        # Resolving may fetch guilds and members past the 3 second interaction window
        await interaction.response.defer()
        if decision is ReviewDecision.APPROVE:
            result = await self.services.ban_requests.approve(key)
        else:
            result = await self.services.ban_requests.deny(key)
        await self._respond(interaction, result)

    async def _respond(self, interaction: discord.Interaction, result: ResolutionResult) -> None:
        """Replace the request message on success; report failures privately so the controls stay."""
        try:
            if result.success:
                await interaction.edit_original_response(content=result.message, embed=None, view=None)
                self.services.runtime.emit("ban_resolved")
            else:
                await interaction.followup.send(result.message, ephemeral=True)
        except discord.HTTPException as exc:
            logger.error("Failed to respond to ban review interaction: %s", exc)


def setup(discord_bot_instance, services: ModerationServices):
    discord_bot_instance.add_cog(BanReviewCog(discord_bot_instance, services))
