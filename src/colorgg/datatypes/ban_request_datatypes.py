"""
Data structures for the human-reviewed ban request workflow.
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


CUSTOM_ID_PREFIX = "ban"


class ReviewDecision(Enum):
    """Choice offered to the reviewer on a ban request."""

    APPROVE = "approve"
    DENY = "deny"

    def __str__(self) -> str:
        return self.value


class DeliveryRoute(Enum):
    """Where a ban request ended up, in fallback order."""

    DIRECT_MESSAGE = "direct_message"
    MOD_CHANNEL = "mod_channel"
    VIOLATION_CHANNEL = "violation_channel"
    ANY_CHANNEL = "any_channel"
    UNDELIVERED = "undelivered"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class BanRequestKey:
    """Composite key of a pending ban request."""

    user_id: int
    guild_id: int

    def custom_id(self, decision: ReviewDecision) -> str:
        """Build the opaque component id carried by the approve/deny buttons."""
        return f"{CUSTOM_ID_PREFIX}_{decision.value}_{self.user_id}_{self.guild_id}"

    @staticmethod
    def parse_custom_id(custom_id: str | None) -> Optional[tuple[ReviewDecision, "BanRequestKey"]]:
        """Decode a component id, returning None for ids that are not ban controls."""
        if not custom_id:
            return None
        parts = custom_id.split("_")
        if len(parts) != 4 or parts[0] != CUSTOM_ID_PREFIX:
            return None
        try:
            decision = ReviewDecision(parts[1])
            return decision, BanRequestKey(user_id=int(parts[2]), guild_id=int(parts[3]))
        except ValueError:
            return None


@dataclass(slots=True)
class PendingBanRequest:
    """A ban request awaiting a reviewer's decision."""

    user_id: int
    guild_id: int
    username: str
    guild_name: str
    reason: str
    violations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    kicked: bool = False
    delivered: bool = False
    delivery_route: DeliveryRoute = DeliveryRoute.UNDELIVERED
    timestamp: str = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat()
    )

    @property
    def key(self) -> BanRequestKey:
        return BanRequestKey(user_id=self.user_id, guild_id=self.guild_id)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["delivery_route"] = self.delivery_route.value
        return data


@dataclass(slots=True)
class ResolutionResult:
    """Outcome of a reviewer pressing approve or deny."""

    decision: ReviewDecision
    key: BanRequestKey
    success: bool
    message: str
    already_resolved: bool = False
