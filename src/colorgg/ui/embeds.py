"""
Embed builders for moderation notices, ban requests and chat summaries.
"""

import datetime

import discord

from colorgg.datatypes.ban_request_datatypes import PendingBanRequest
from colorgg.datatypes.moderation_datatypes import ActionType, ChatSummary
from colorgg.util import discord_utils

FOOTER = "ColorGG AI Moderation"

# Message excerpts shown to reviewers are cut to this many characters
EXCERPT_LIMIT = 900

ACTION_COLORS = {
    ActionType.WARN: discord.Color.gold(),
    ActionType.TIMEOUT: discord.Color.gold(),
    ActionType.KICK: discord.Color.orange(),
    ActionType.REQUEST_BAN: discord.Color.red(),
    ActionType.BAN: discord.Color.dark_red(),
}


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _field_value(text: str, limit: int = 1024) -> str:
    text = text or "N/A"
    return text if len(text) <= limit else text[: limit - 3] + "..."


def build_action_notice_embed(action: ActionType, guild_name: str, reason: str, duration: int = 0) -> discord.Embed:
    """DM sent to an offender after any action other than a warning."""
    embed = discord.Embed(
        title="⚠️ Moderation Notice | ColorGG",
        description=f"Action was taken on your message in **{guild_name}**.",
        color=ACTION_COLORS.get(action, discord.Color.gold()),
        timestamp=_now(),
    )
    embed.add_field(name="Action", value="MESSAGE REMOVED" if action is ActionType.NONE else action.label, inline=True)
    if duration > 0:
        embed.add_field(name="Duration", value=discord_utils.format_duration(duration), inline=True)
    embed.add_field(name="Reason", value=_field_value(reason), inline=False)
    embed.set_footer(text=FOOTER)
    return embed


def build_ban_request_embed(
    request: PendingBanRequest,
    channel_name: str,
    message_content: str,
    reasoning: str,
) -> discord.Embed:
    """Review payload delivered to the ban reviewer, with the restraint outcome."""
    restraint = "KICKED" if request.kicked else "timed out"
    embed = discord.Embed(
        title="🚨 BAN REQUEST | ColorGG",
        description=(
            f"**A critical violation was detected. The user has been {restraint} and a ban is recommended.**"
            "\n\nPlease review and approve or deny."
        ),
        color=discord.Color.red(),
        timestamp=_now(),
    )
    excerpt = (message_content or "")[:EXCERPT_LIMIT] or "N/A"
    embed.add_field(name="👤 Offender", value=f"{request.username}\n`{request.user_id}`", inline=True)
    embed.add_field(name="🏠 Server", value=request.guild_name, inline=True)
    embed.add_field(name="📍 Channel", value=f"#{channel_name}", inline=True)
    embed.add_field(name="💬 Message Content", value=f"```{excerpt}```", inline=False)
    embed.add_field(name="⚠️ Violation", value=", ".join(request.violations) or "Unknown", inline=True)
    embed.add_field(name="📊 Confidence", value=f"**{request.confidence * 100:.1f}%**", inline=True)
    embed.add_field(name="🧠 Reasoning", value=_field_value(reasoning), inline=False)
    embed.add_field(
        name="⚔️ Action Taken",
        value="User was **kicked** from the server" if request.kicked else "User was **timed out** (pending review)",
        inline=False,
    )
    embed.set_footer(text=f"{FOOTER} | Ban Request")
    return embed


def build_summary_embed(summary: ChatSummary) -> discord.Embed:
    embed = discord.Embed(
        title=f"📋 Chat Summary: #{summary.channel_name}",
        description=_field_value(summary.summary, 4096),
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    embed.set_footer(text=f"{FOOTER} • {summary.message_count} messages analyzed")
    return embed
