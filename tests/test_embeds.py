from colorgg.datatypes.ban_request_datatypes import PendingBanRequest
from colorgg.datatypes.moderation_datatypes import ActionType, ChatSummary
from colorgg.ui.embeds import (
    EXCERPT_LIMIT,
    build_action_notice_embed,
    build_ban_request_embed,
    build_summary_embed,
)


def fields(embed):
    return {field.name: field.value for field in embed.fields}


def test_action_notice_includes_duration_only_for_timeouts():
    timeout = fields(build_action_notice_embed(ActionType.TIMEOUT, "Test Guild", "spam", 600))
    kick = fields(build_action_notice_embed(ActionType.KICK, "Test Guild", "scam links"))

    assert timeout["Action"] == "TIMEOUT"
    assert timeout["Duration"] == "10 mins"
    assert "Duration" not in kick
    assert kick["Reason"] == "scam links"


def test_ban_request_embed_truncates_excerpt_and_reports_restraint():
    request = PendingBanRequest(
        user_id=20,
        guild_id=1,
        username="offender",
        guild_name="Test Guild",
        reason="threat",
        violations=["threats"],
        confidence=0.9,
        kicked=True,
    )

    embed = build_ban_request_embed(request, "general", "x" * 2000, "Credible threat")
    values = fields(embed)

    assert values["💬 Message Content"] == f"```{'x' * EXCERPT_LIMIT}```"
    assert values["📊 Confidence"] == "**90.0%**"
    assert "kicked" in values["⚔️ Action Taken"]
    assert "KICKED" in embed.description


def test_summary_embed():
    embed = build_summary_embed(
        ChatSummary(summary="Lots of patch talk.", channel_name="general", guild_name="Test Guild", message_count=40)
    )

    assert embed.title.endswith("#general")
    assert embed.description == "Lots of patch talk."
    assert "40 messages" in embed.footer.text
