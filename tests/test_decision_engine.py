"""Tests for the decision engine."""

import pytest

from colorgg.datatypes.moderation_datatypes import (
    DEFAULT_TIMEOUT_SECONDS,
    MAX_TIMEOUT_SECONDS,
    ActionType,
    ModerationSettings,
    Rule,
    Verdict,
)
from colorgg.moderation.decision_engine import decide, find_rule


def flagged(*violations, action=ActionType.NONE, duration=0, confidence=0.9) -> Verdict:
    return Verdict(
        flagged=True,
        violations=list(violations),
        confidence=confidence,
        reasoning="test",
        suggested_action=action,
        suggested_duration=duration,
    )


class TestDecide:
    def test_unflagged_verdict_yields_none(self, rules, settings):
        assert decide(Verdict(), rules, 5, settings).kind is ActionType.NONE

    def test_low_confidence_yields_none(self, rules, settings):
        verdict = flagged("scams", confidence=0.7)
        assert decide(verdict, rules, 5, settings).kind is ActionType.NONE

    def test_no_enabled_rules_yields_none(self, settings):
        disabled = [Rule(id="spam", name="Spam", action=ActionType.KICK, enabled=False)]
        assert decide(flagged("spam"), disabled, 0, settings).kind is ActionType.NONE

    def test_rule_action_overrides_suggestion(self, rules, settings):
        action = decide(flagged("scams", action=ActionType.WARN), rules, 0, settings)
        assert action.kind is ActionType.KICK
        assert action.rule.id == "scams"

    def test_unknown_violation_uses_suggestion(self, rules, settings):
        action = decide(flagged("made-up", action=ActionType.KICK), rules, 0, settings)
        assert action.kind is ActionType.KICK
        assert action.rule is None

    def test_disabled_rule_still_overrides(self, rules, settings):
        action = decide(flagged("nsfw", action=ActionType.KICK), rules, 0, settings)
        assert action.kind is ActionType.WARN

    def test_timeout_is_softened_below_threshold(self, rules, settings):
        action = decide(flagged("spam"), rules, 0, settings)
        assert action.kind is ActionType.WARN
        assert action.duration == 0

        action = decide(flagged("spam"), rules, 1, settings)
        assert action.kind is ActionType.WARN

    def test_timeout_at_threshold_uses_rule_duration(self, rules, settings):
        action = decide(flagged("spam", duration=60), rules, 2, settings)
        assert action.kind is ActionType.TIMEOUT
        assert action.duration == 300

    def test_zero_rule_duration_keeps_suggested_duration(self, settings):
        rules = [Rule(id="spam", name="Spam", action=ActionType.TIMEOUT, timeout_duration=0)]
        action = decide(flagged("spam", duration=90), rules, 2, settings)
        assert action.duration == 90

    def test_timeout_duration_defaults_and_caps(self, settings):
        rules = [Rule(id="other", name="Other")]
        settings.warnings_before_action = 0

        action = decide(flagged("unknown", action=ActionType.TIMEOUT), rules, 0, settings)
        assert action.duration == DEFAULT_TIMEOUT_SECONDS

        action = decide(flagged("unknown", action=ActionType.TIMEOUT, duration=10**9), rules, 0, settings)
        assert action.duration == MAX_TIMEOUT_SECONDS

    def test_other_actions_are_not_softened(self, rules, settings):
        assert decide(flagged("threats"), rules, 0, settings).kind is ActionType.REQUEST_BAN
        assert decide(flagged("scams"), rules, 0, settings).kind is ActionType.KICK

    def test_zero_threshold_disables_softening(self, rules):
        settings = ModerationSettings(warnings_before_action=0)
        assert decide(flagged("spam"), rules, 0, settings).kind is ActionType.TIMEOUT

    def test_model_none_suggestion_on_unknown_rule(self, rules, settings):
        action = decide(flagged(action=ActionType.NONE), rules, 0, settings)
        assert action.kind is ActionType.NONE
        assert action.deletes_message is True

    def test_flagged_none_rule_still_removes_the_message(self, settings):
        rules = [Rule(id="spam", name="Spam", action=ActionType.NONE)]
        action = decide(flagged("spam", action=ActionType.KICK), rules, 5, settings)
        assert action.kind is ActionType.NONE
        assert action.flagged is True
        assert action.deletes_message is True

    def test_unflagged_outcome_deletes_nothing(self, rules, settings):
        action = decide(Verdict(), rules, 5, settings)
        assert action.flagged is False
        assert action.deletes_message is False


@pytest.mark.parametrize("rule_id, expected", [("spam", "spam"), ("missing", None), (None, None), ("", None)])
def test_find_rule(rules, rule_id, expected):
    rule = find_rule(rules, rule_id)
    assert (rule.id if rule else None) == expected
