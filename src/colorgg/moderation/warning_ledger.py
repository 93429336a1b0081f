"""In-memory per-user warning counter used for escalation softening."""

from __future__ import annotations

from typing import Dict

from colorgg.util.logger import get_logger

logger = get_logger("warning_ledger")


class WarningLedger:
    """Count warn-level actions per user for the lifetime of the process.

    Counts never decay. An entry is created on the first warning and only
    disappears through :meth:`reset` or :meth:`clear`.
    """

    def __init__(self) -> None:
        self._counts: Dict[int, int] = {}

    def get(self, user_id: int) -> int:
        return self._counts.get(user_id, 0)

    def add(self, user_id: int) -> int:
        """Record one warning and return the new count."""
        count = self._counts.get(user_id, 0) + 1
        self._counts[user_id] = count
        logger.debug("[WARNINGS] User %s now has %d warning(s)", user_id, count)
        return count

    def reset(self, user_id: int) -> bool:
        """Forget a user's warnings; returns False when there were none."""
        removed = self._counts.pop(user_id, None) is not None
        if removed:
            logger.info("[WARNINGS] Reset warnings for user %s", user_id)
        return removed

    def clear(self) -> None:
        self._counts.clear()

    def snapshot(self) -> Dict[int, int]:
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)
