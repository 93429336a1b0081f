"""
Pytest configuration and fixtures for ColorGG tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))
# Shared fakes live next to this file
sys.path.insert(0, str(Path(__file__).parent))

from colorgg.audit.audit_log import AuditLog  # noqa: E402
from colorgg.datatypes.moderation_datatypes import ActionType, ModerationSettings, Rule, Severity  # noqa: E402


@pytest.fixture
def audit_log() -> AuditLog:
    return AuditLog(memory_limit=100)


@pytest.fixture
def settings() -> ModerationSettings:
    return ModerationSettings(warnings_before_action=2, ban_request_user="reviewer", dm_on_action=True)


@pytest.fixture
def rules() -> list[Rule]:
    return [
        Rule(id="spam", name="Spam", severity=Severity.LOW, action=ActionType.TIMEOUT, timeout_duration=300),
        Rule(id="harassment", name="Harassment", severity=Severity.MEDIUM, action=ActionType.WARN),
        Rule(id="scams", name="Scams", severity=Severity.HIGH, action=ActionType.KICK),
        Rule(id="threats", name="Threats", severity=Severity.CRITICAL, action=ActionType.REQUEST_BAN),
        Rule(id="nsfw", name="NSFW", action=ActionType.WARN, enabled=False),
    ]
