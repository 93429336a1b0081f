"""
Map a classifier verdict onto a concrete enforcement action.

The decision is pure: it reads the verdict, the configured rules, the user's
current warning count and the global settings, and returns an :class:`Action`.
Nothing here touches Discord or mutates the warning ledger.

Operator policy always wins over the model's suggestion. When the primary
violation names a known rule, that rule's action and (non-zero) timeout
duration replace whatever the classifier proposed. Timeouts are softened to
warnings until the user has accumulated ``warnings_before_action`` warnings.
"""

from __future__ import annotations

from typing import Optional, Sequence

from colorgg.datatypes.moderation_datatypes import (
    CONFIDENCE_THRESHOLD,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_TIMEOUT_SECONDS,
    Action,
    ActionType,
    ModerationSettings,
    Rule,
    Verdict,
)
from colorgg.util.logger import get_logger

logger = get_logger("decision_engine")


def find_rule(rules: Sequence[Rule], rule_id: Optional[str]) -> Optional[Rule]:
    if not rule_id:
        return None
    return next((rule for rule in rules if rule.id == rule_id), None)


def _clamp_timeout(duration: int) -> int:
    if duration <= 0:
        return DEFAULT_TIMEOUT_SECONDS
    return min(duration, MAX_TIMEOUT_SECONDS)


def decide(
    verdict: Verdict,
    rules: Sequence[Rule],
    warning_count: int,
    settings: ModerationSettings,
) -> Action:
    """Resolve the action to take for one classified message.

    Args:
        verdict: Normalised classifier output.
        rules: Every configured rule, enabled or not.
        warning_count: Warnings the author has accumulated so far.
        settings: Global moderation settings.

    Returns:
        Action: ``Action.none()`` when the verdict does not warrant action.
        Otherwise a flagged action with its kind, its duration in seconds
        (timeouts only) and the rule that drove it, if any. A flagged ``NONE``
        still removes the message.
    """
    if not any(rule.enabled for rule in rules):
        return Action.none()
    if not verdict.flagged or verdict.confidence <= CONFIDENCE_THRESHOLD:
        return Action.none()

    kind = verdict.suggested_action
    duration = verdict.suggested_duration

    rule = find_rule(rules, verdict.primary_violation)
    if rule is not None:
        kind = rule.action
        if rule.timeout_duration:
            duration = rule.timeout_duration
    elif verdict.primary_violation:
        logger.debug(
            "[DECISION] Violation %r matches no configured rule, using suggested action %s",
            verdict.primary_violation,
            kind,
        )

    if kind is ActionType.TIMEOUT and warning_count < settings.warnings_before_action:
        logger.debug(
            "[DECISION] Softening timeout to warning (%d/%d warnings)",
            warning_count,
            settings.warnings_before_action,
        )
        kind = ActionType.WARN

    if kind is ActionType.TIMEOUT:
        return Action(kind=kind, duration=_clamp_timeout(duration), rule=rule, flagged=True)
    return Action(kind=kind, rule=rule, flagged=True)
