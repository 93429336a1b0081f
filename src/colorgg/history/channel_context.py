"""
Rolling per-channel message context.

Each channel keeps the last ``max_messages`` messages seen by the bot. The
context only enriches classification requests, so losing it degrades verdict
quality but never changes what the pipeline is allowed to do.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List

from colorgg.datatypes.moderation_datatypes import ContextMessage
from colorgg.util.logger import get_logger

logger = get_logger("channel_context")

DEFAULT_CONTEXT_SIZE = 10


class ChannelContext:
    """Bounded FIFO of recent messages, one per channel."""

    def __init__(self, max_messages: int = DEFAULT_CONTEXT_SIZE) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self._channels: Dict[int, Deque[ContextMessage]] = {}

    def track(self, channel_id: int, entry: ContextMessage) -> None:
        """Append ``entry``; the oldest message is dropped once the bound is exceeded."""
        channel = self._channels.get(channel_id)
        if channel is None:
            channel = self._channels[channel_id] = deque(maxlen=self.max_messages)
        channel.append(entry)

    def get(self, channel_id: int) -> List[ContextMessage]:
        """Return a chronological copy of the channel's context."""
        return list(self._channels.get(channel_id, ()))

    def clear(self, channel_id: int | None = None) -> None:
        if channel_id is None:
            self._channels.clear()
            logger.debug("[CONTEXT] Cleared context for all channels")
        else:
            self._channels.pop(channel_id, None)

    @property
    def channel_count(self) -> int:
        return len(self._channels)
