"""
Process-wide runtime state of the bot: counters, uptime, archived summaries
and the live status feed consumed by the operator console.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

import discord

from colorgg.datatypes.moderation_datatypes import ChatSummary
from colorgg.events.event_feed import EventFeed
from colorgg.moderation.ban_requests import BanRequestProtocol
from colorgg.util.logger import get_logger

logger = get_logger("runtime")

StatusSnapshot = Dict[str, Any]


class BotRuntime:
    """Counters and status publishing for one bot process."""

    def __init__(
        self,
        bot: discord.Bot,
        ban_requests: BanRequestProtocol,
        summary_history: int = 50,
    ) -> None:
        self.bot = bot
        self._ban_requests = ban_requests
        self.running = False
        self.started_at: Optional[float] = None
        self.message_count = 0
        self.action_count = 0
        self.summaries: Deque[ChatSummary] = deque(maxlen=summary_history)
        self.status_feed: EventFeed[StatusSnapshot] = EventFeed("status")

    # --------------------------
    # Lifecycle
    # --------------------------
    def mark_started(self) -> None:
        self.running = True
        self.started_at = time.monotonic()
        self.emit("running")

    def mark_stopped(self) -> None:
        self.running = False
        self.started_at = None
        self.emit("stopped")

    # --------------------------
    # Counters
    # --------------------------
    def record_message(self) -> None:
        self.message_count += 1
        self.emit("message")

    def record_action(self) -> None:
        self.action_count += 1
        self.emit("action")

    def add_summary(self, summary: ChatSummary) -> None:
        self.summaries.append(summary)

    def recent_summaries(self, count: int = 10) -> List[ChatSummary]:
        return list(self.summaries)[-count:]

    # --------------------------
    # Status
    # --------------------------
    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at if self.started_at is not None else 0.0

    def snapshot(self, event: Optional[str] = None) -> StatusSnapshot:
        guilds = list(getattr(self.bot, "guilds", []) or [])
        user = getattr(self.bot, "user", None)
        return {
            "running": self.running,
            "uptime_seconds": round(self.uptime_seconds, 1),
            "username": str(user) if user is not None else None,
            "guilds": len(guilds),
            "members": sum(guild.member_count or 0 for guild in guilds),
            "message_count": self.message_count,
            "action_count": self.action_count,
            "pending_bans": [request.to_dict() for request in self._ban_requests.pending_requests()],
            "guild_list": [
                {"id": guild.id, "name": guild.name, "member_count": guild.member_count or 0}
                for guild in guilds
            ],
            "event": event,
        }

    def emit(self, event: str) -> None:
        """Publish a fresh snapshot tagged with ``event`` to status subscribers."""
        if not self.status_feed.listener_count:
            return
        self.status_feed.publish(self.snapshot(event))
