"""
Core data structures for the moderation pipeline.

This module defines the rule and settings records owned by the rule store, the
verdict produced by the classifier, and the action produced by the decision
engine. Everything here is plain data: no Discord objects and no I/O.
"""

from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


# A verdict is only actionable above this confidence
CONFIDENCE_THRESHOLD = 0.7

# Discord refuses timeouts longer than 28 days
MAX_TIMEOUT_SECONDS = 28 * 24 * 60 * 60

DEFAULT_TIMEOUT_SECONDS = 10 * 60


class Severity(Enum):
    """Severity assigned to a moderation rule."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class ActionType(Enum):
    """Enumeration of moderation actions.

    The first five members are what a rule can be configured with and what the
    decision engine can produce. ``BAN`` and ``BAN_DENIED`` only appear in the
    audit trail as outcomes of a reviewed ban request.
    """

    NONE = "none"
    WARN = "warn"
    TIMEOUT = "timeout"
    KICK = "kick"
    REQUEST_BAN = "request_ban"
    BAN = "ban"
    BAN_DENIED = "ban_denied"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").upper()

    @classmethod
    def parse(cls, value: Any) -> "ActionType":
        """Map a raw configuration or model value onto a rule action, defaulting to NONE."""
        try:
            action = cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE
        return action if action in RULE_ACTIONS else cls.NONE


RULE_ACTIONS = frozenset({
    ActionType.NONE,
    ActionType.WARN,
    ActionType.TIMEOUT,
    ActionType.KICK,
    ActionType.REQUEST_BAN,
})

# Action kinds the enforcement executor has a handler for
ENFORCEABLE_ACTIONS = frozenset({
    ActionType.WARN,
    ActionType.TIMEOUT,
    ActionType.KICK,
    ActionType.REQUEST_BAN,
})


@dataclass(slots=True)
class Rule:
    """A single moderation rule as configured by the operator."""

    id: str
    name: str
    description: str = ""
    severity: Severity = Severity.MEDIUM
    action: ActionType = ActionType.WARN
    timeout_duration: int = 0
    enabled: bool = True
    ai_prompt: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        try:
            severity = Severity(str(data.get("severity", "medium")).lower())
        except ValueError:
            severity = Severity.MEDIUM
        try:
            timeout_duration = max(0, int(data.get("timeout_duration") or 0))
        except (TypeError, ValueError):
            timeout_duration = 0
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            description=str(data.get("description") or ""),
            severity=severity,
            action=ActionType.parse(data.get("action", "warn")),
            timeout_duration=timeout_duration,
            enabled=bool(data.get("enabled", True)),
            ai_prompt=str(data.get("ai_prompt") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["action"] = self.action.value
        return data


@dataclass(slots=True)
class ModerationSettings:
    """Global moderation settings consumed by the pipeline."""

    moderation_style: str = "balanced"
    warnings_before_action: int = 2
    ban_request_user: str = ""
    dm_on_action: bool = True
    ignored_channels: List[int] = field(default_factory=list)
    ignored_roles: List[int] = field(default_factory=list)
    trusted_roles: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModerationSettings":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        settings = cls(**values)
        try:
            settings.warnings_before_action = max(0, int(settings.warnings_before_action))
        except (TypeError, ValueError):
            settings.warnings_before_action = 2
        settings.ban_request_user = str(settings.ban_request_user or "")
        settings.dm_on_action = bool(settings.dm_on_action)
        for name in ("ignored_channels", "ignored_roles", "trusted_roles"):
            setattr(settings, name, _coerce_id_list(getattr(settings, name)))
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce_id_list(value: Any) -> List[int]:
    if not isinstance(value, (list, tuple, set)):
        return []
    ids: List[int] = []
    for item in value:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids


@dataclass(slots=True)
class ContextMessage:
    """One entry of the rolling per-channel context."""

    author: str
    content: str
    timestamp: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))


@dataclass(slots=True)
class MessageSnapshot:
    """Platform-independent view of the message being classified."""

    message_id: int
    author_id: int
    author_name: str
    channel_id: int
    channel_name: str
    guild_id: int
    guild_name: str
    content: str


@dataclass(slots=True)
class Verdict:
    """Normalised classification result for one message.

    ``flagged`` is only ever True together with ``confidence > CONFIDENCE_THRESHOLD``.
    """

    flagged: bool = False
    violations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""
    suggested_action: ActionType = ActionType.NONE
    suggested_duration: int = 0
    reply_message: Optional[str] = None

    @property
    def primary_violation(self) -> Optional[str]:
        return self.violations[0] if self.violations else None

    @classmethod
    def failed(cls, reason: str) -> "Verdict":
        return cls(flagged=False, confidence=0.0, reasoning=reason)


@dataclass(slots=True)
class Action:
    """Concrete enforcement decided for a message.

    ``flagged`` marks an action decided for a flagged verdict. A flagged action
    of kind ``NONE`` only removes the message.
    """

    kind: ActionType
    duration: int = 0
    rule: Optional[Rule] = None
    flagged: bool = False

    @property
    def removes_only(self) -> bool:
        return self.flagged and self.kind is ActionType.NONE

    @property
    def deletes_message(self) -> bool:
        if self.kind is ActionType.WARN:
            return False
        return self.kind in ENFORCEABLE_ACTIONS or self.removes_only

    @classmethod
    def none(cls) -> "Action":
        return cls(kind=ActionType.NONE)


@dataclass(slots=True)
class PurgeResult:
    """Outcome of a bulk retroactive review."""

    flagged_indexes: List[int] = field(default_factory=list)
    reasons: Dict[int, str] = field(default_factory=dict)
    total_flagged: int = 0
    summary: str = ""


@dataclass(slots=True)
class ChatSummary:
    """AI digest of a slice of channel history."""

    summary: str
    channel_name: str
    guild_name: str
    message_count: int
    timestamp: str = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
