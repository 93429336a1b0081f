"""
discord_utils.py
================

Low-level Discord helpers shared by the enforcement executor, the ban request
protocol and the cogs: privilege checks, member resolution, safe deletion and
best-effort direct messages. Nothing here keeps state.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import discord

from colorgg.util.logger import get_logger

logger = get_logger("discord_utils")


def format_duration(seconds: int) -> str:
    """
    Convert a duration in seconds to a human-readable string.

    Args:
        seconds (int): Duration in seconds.

    Returns:
        str: Human-readable duration string.
    """
    if seconds <= 0:
        return "no duration"
    elif seconds < 60:
        return f"{seconds} secs"
    elif seconds < 3600:
        mins = seconds // 60
        return f"{mins} min{'s' if mins != 1 else ''}"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"


def has_any_role(member, role_ids: Iterable[int]) -> bool:
    """Return True when ``member`` holds at least one of ``role_ids``."""
    wanted = set(role_ids)
    if not wanted:
        return False
    return any(role.id in wanted for role in getattr(member, "roles", []))


def can_moderate(guild: discord.Guild, member: discord.Member, permission: str) -> bool:
    """
    Check whether the bot may apply ``permission`` (e.g. ``"kick_members"``) to ``member``.

    The bot needs the guild permission itself, cannot act on the guild owner
    or on itself, and its top role must sit strictly above the member's.
    """
    me = getattr(guild, "me", None)
    if me is None:
        return False
    if not getattr(me.guild_permissions, permission, False):
        return False
    if member.id == getattr(guild, "owner_id", None) or member.id == me.id:
        return False
    return me.top_role > member.top_role


def matches_username(user, name: str) -> bool:
    """Case-insensitive match of ``name`` against username, display name or global name."""
    if not name:
        return False
    wanted = name.casefold()
    for attr in ("name", "display_name", "global_name"):
        value = getattr(user, attr, None)
        if isinstance(value, str) and value.casefold() == wanted:
            return True
    return False


async def resolve_member(guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
    """Return the guild member from cache or the API, or None if they are not in the guild."""
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None
    except discord.HTTPException as exc:
        logger.warning("[DISCORD] Could not fetch member %s in %s: %s", user_id, guild.name, exc)
        return None


async def safe_delete_message(message: discord.Message) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning("[DISCORD] No permission to delete message %s", message.id)
    except Exception as exc:
        logger.error("[DISCORD] Error deleting message %s: %s", message.id, exc)
    return False


async def send_dm(user, **kwargs) -> bool:
    """Best-effort direct message; refusal by the recipient is not an error."""
    try:
        await user.send(**kwargs)
        return True
    except discord.Forbidden:
        logger.debug("[DISCORD] %s does not accept direct messages", getattr(user, "id", user))
    except Exception as exc:
        logger.debug("[DISCORD] Failed to DM %s: %s", getattr(user, "id", user), exc)
    return False


def can_send(channel, guild: discord.Guild) -> bool:
    me = getattr(guild, "me", None)
    if me is None:
        return False
    try:
        return bool(channel.permissions_for(me).send_messages)
    except Exception:
        return False


def find_channel_by_names(guild: discord.Guild, names: Sequence[str]):
    """Return the first text channel whose name equals one of ``names``, in priority order."""
    channels = list(getattr(guild, "text_channels", []))
    for name in names:
        wanted = name.lower()
        for channel in channels:
            if channel.name.lower() == wanted:
                return channel
    return None
