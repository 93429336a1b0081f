"""
Approve/deny controls attached to ban requests.

The buttons carry an opaque ``custom_id`` built from the request key. Clicks
are routed by the ban review listener through ``on_interaction`` rather than
through button callbacks, so requests delivered before a restart can still be
resolved afterwards.
"""

from __future__ import annotations

import discord

from colorgg.datatypes.ban_request_datatypes import BanRequestKey, ReviewDecision


class BanReviewView(discord.ui.View):
    """Persistent view holding the two review buttons for one ban request."""

    def __init__(self, key: BanRequestKey):
        super().__init__(timeout=None)
        self.key = key
        self.add_item(
            discord.ui.Button(
                label="Approve Ban",
                emoji="✅",
                style=discord.ButtonStyle.danger,
                custom_id=key.custom_id(ReviewDecision.APPROVE),
            )
        )
        self.add_item(
            discord.ui.Button(
                label="Deny",
                emoji="❌",
                style=discord.ButtonStyle.secondary,
                custom_id=key.custom_id(ReviewDecision.DENY),
            )
        )
