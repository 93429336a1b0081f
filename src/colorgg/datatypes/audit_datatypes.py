"""
Audit trail entry shapes.

Every entry carries a ``type`` discriminator. ``AuditLog.record`` stamps an id
and a timestamp on top of the fields below and stores the flat mapping.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


class AuditEntryType(Enum):
    MOD_ACTION = "mod_action"
    AI_ANALYSIS = "ai_analysis"
    BOT_EVENT = "bot_event"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class AuditEntry:
    """Base class for audit entries."""

    entry_type: ClassVar[AuditEntryType]

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"type": self.entry_type.value}
        for key, value in asdict(self).items():
            record[key] = value.value if isinstance(value, Enum) else value
        return record


@dataclass(slots=True)
class ModActionEntry(AuditEntry):
    entry_type: ClassVar[AuditEntryType] = AuditEntryType.MOD_ACTION

    action: str
    user_id: Optional[int] = None
    username: Optional[str] = None
    guild_id: Optional[int] = None
    guild_name: Optional[str] = None
    channel_id: Optional[int] = None
    channel_name: Optional[str] = None
    message_content: Optional[str] = None
    reason: str = ""
    rule_id: Optional[str] = None
    severity: Optional[str] = None
    ai_confidence: Optional[float] = None
    duration: Optional[int] = None


@dataclass(slots=True)
class AIAnalysisEntry(AuditEntry):
    entry_type: ClassVar[AuditEntryType] = AuditEntryType.AI_ANALYSIS

    user_id: Optional[int] = None
    username: Optional[str] = None
    channel_id: Optional[int] = None
    channel_name: Optional[str] = None
    message_content: Optional[str] = None
    flagged: bool = False
    violations: List[str] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""


@dataclass(slots=True)
class BotEventEntry(AuditEntry):
    entry_type: ClassVar[AuditEntryType] = AuditEntryType.BOT_EVENT

    event: str
    details: str = ""


@dataclass(slots=True)
class ErrorEntry(AuditEntry):
    entry_type: ClassVar[AuditEntryType] = AuditEntryType.ERROR

    error: str
    context: str = ""
    stack: Optional[str] = None
