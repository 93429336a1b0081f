"""Tests for the human-reviewed ban request protocol."""

import datetime

import discord
import pytest

from colorgg.datatypes.ban_request_datatypes import BanRequestKey, DeliveryRoute, ReviewDecision
from colorgg.datatypes.moderation_datatypes import ActionType, ModerationSettings, Verdict
from colorgg.moderation.ban_requests import BanRequestProtocol
from colorgg.moderation.moderation_pipeline import snapshot_message
from colorgg.ui.review_controls import BanReviewView
from discord_fakes import FakeBot, FakeChannel, FakeGuild, FakeMember, FakeMessage, http_error

OFFENDER_ID = 20
GUILD_ID = 1


@pytest.fixture
def offender():
    return FakeMember(OFFENDER_ID, "offender")


@pytest.fixture
def reviewer():
    return FakeMember(77, "reviewer", display_name="Head Mod", permissions=("ban_members",))


@pytest.fixture
def mod_channel():
    return FakeChannel(301, "mod-log")


@pytest.fixture
def violation_channel():
    return FakeChannel(302, "general")


@pytest.fixture
def spare_channel():
    return FakeChannel(303, "random")


@pytest.fixture
def guild(offender, reviewer, mod_channel, violation_channel, spare_channel):
    return FakeGuild(
        GUILD_ID,
        "Test Guild",
        members=[offender, reviewer],
        text_channels=[violation_channel, spare_channel, mod_channel],
    )


@pytest.fixture
def bot(guild):
    return FakeBot(guilds=[guild])


@pytest.fixture
def protocol(bot, audit_log):
    return BanRequestProtocol(bot, audit_log, restraint_days=7, search_timeout=0.5)


@pytest.fixture
def message(offender, violation_channel, guild):
    return FakeMessage(10, offender, violation_channel, guild, "I know where you live")


@pytest.fixture
def threat():
    return Verdict(
        flagged=True,
        violations=["threats"],
        confidence=0.97,
        reasoning="Credible threat against a member",
        suggested_action=ActionType.REQUEST_BAN,
    )


KEY = BanRequestKey(user_id=OFFENDER_ID, guild_id=GUILD_ID)


def sent_view(channel_or_member) -> BanReviewView:
    return channel_or_member.send.await_args.kwargs["view"]


class TestRequestBan:
    @pytest.mark.asyncio
    async def test_kickable_offender_is_kicked_and_reviewer_dmed(
        self, protocol, audit_log, message, offender, reviewer, mod_channel, threat, rules, settings
    ):
        request = await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        offender.kick.assert_awaited_once()
        offender.timeout.assert_not_awaited()
        reviewer.send.assert_awaited_once()
        mod_channel.send.assert_not_awaited()
        assert request.kicked is True
        assert request.delivered is True
        assert request.delivery_route is DeliveryRoute.DIRECT_MESSAGE
        assert protocol.get_pending(KEY) is request

        view = sent_view(reviewer)
        assert [item.custom_id for item in view.children] == ["ban_approve_20_1", "ban_deny_20_1"]
        assert view.timeout is None

        actions = [r["action"] for r in audit_log.get_logs(entry_type="mod_action")]
        assert actions == ["kick", "request_ban"]
        assert audit_log.get_logs(entry_type="mod_action")[-1]["severity"] == "critical"

    @pytest.mark.asyncio
    async def test_unkickable_offender_is_muted_for_restraint_period(
        self, protocol, message, offender, threat, rules, settings
    ):
        offender.top_role.position = 99
        before = discord.utils.utcnow()

        request = await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        offender.kick.assert_not_awaited()
        until = offender.timeout.await_args.args[0]
        assert until >= before + datetime.timedelta(days=7) - datetime.timedelta(seconds=1)
        assert request.kicked is False

    @pytest.mark.asyncio
    async def test_refused_kick_falls_back_to_mute(self, protocol, message, offender, threat, rules, settings):
        offender.kick.side_effect = http_error()

        request = await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        offender.timeout.assert_awaited_once()
        assert request.kicked is False

    @pytest.mark.asyncio
    async def test_undelivered_request_is_kept_and_reported(
        self, protocol, audit_log, message, reviewer, mod_channel, violation_channel, spare_channel, threat, rules, settings
    ):
        for target in (reviewer, mod_channel, violation_channel, spare_channel):
            target.send.side_effect = http_error()

        request = await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        assert request.delivered is False
        assert request.delivery_route is DeliveryRoute.UNDELIVERED
        assert protocol.get_pending(KEY) is request
        errors = audit_log.get_logs(entry_type="error")
        assert [e["context"] for e in errors] == ["Ban request delivery exhausted"]
        assert audit_log.get_logs(entry_type="mod_action")[-1]["action"] == "request_ban"


class TestDeliveryOrder:
    @pytest.fixture
    def embed(self):
        return discord.Embed(title="Ban request")

    @pytest.mark.asyncio
    async def test_dm_failure_falls_through_to_mod_channel(
        self, protocol, guild, reviewer, mod_channel, violation_channel, spare_channel, embed
    ):
        reviewer.send.side_effect = http_error(message="Cannot send messages to this user")

        route = await protocol.deliver(guild, violation_channel, reviewer, embed, KEY)

        assert route is DeliveryRoute.MOD_CHANNEL
        assert reviewer.send.await_count == 1
        assert mod_channel.send.await_count == 1
        assert violation_channel.send.await_count == 0
        assert spare_channel.send.await_count == 0
        assert mod_channel.send.await_args.kwargs["content"].startswith("<@77>")

    @pytest.mark.asyncio
    async def test_violation_channel_is_third(
        self, protocol, guild, reviewer, mod_channel, violation_channel, spare_channel, embed
    ):
        reviewer.send.side_effect = http_error()
        mod_channel.send.side_effect = http_error()

        route = await protocol.deliver(guild, violation_channel, reviewer, embed, KEY)

        assert route is DeliveryRoute.VIOLATION_CHANNEL
        assert (reviewer.send.await_count, mod_channel.send.await_count, violation_channel.send.await_count) == (1, 1, 1)
        assert spare_channel.send.await_count == 0

    @pytest.mark.asyncio
    async def test_any_channel_skips_already_attempted(
        self, protocol, guild, reviewer, mod_channel, violation_channel, spare_channel, embed
    ):
        for target in (reviewer, mod_channel, violation_channel):
            target.send.side_effect = http_error()

        route = await protocol.deliver(guild, violation_channel, reviewer, embed, KEY)

        assert route is DeliveryRoute.ANY_CHANNEL
        assert violation_channel.send.await_count == 1
        assert spare_channel.send.await_count == 1

    @pytest.mark.asyncio
    async def test_all_routes_exhausted(self, protocol, guild, reviewer, mod_channel, violation_channel, spare_channel, embed):
        for target in (reviewer, mod_channel, violation_channel, spare_channel):
            target.send.side_effect = http_error()

        route = await protocol.deliver(guild, violation_channel, reviewer, embed, KEY)

        assert route is DeliveryRoute.UNDELIVERED
        for target in (reviewer, mod_channel, violation_channel, spare_channel):
            assert target.send.await_count == 1

    @pytest.mark.asyncio
    async def test_without_reviewer_mod_channel_gets_generic_header(
        self, protocol, audit_log, guild, mod_channel, violation_channel, embed
    ):
        route = await protocol.deliver(guild, violation_channel, None, embed, KEY)

        assert route is DeliveryRoute.MOD_CHANNEL
        assert mod_channel.send.await_args.kwargs["content"] == "⚠️ **Ban request for admin review:**"
        assert audit_log.get_logs(entry_type="bot_event")[0]["event"] == "ban_request_mod_channel"

    @pytest.mark.asyncio
    async def test_channels_the_bot_cannot_post_in_are_skipped(self, protocol, reviewer, embed):
        muted = FakeChannel(401, "announcements", can_send=False)
        open_channel = FakeChannel(402, "chat")
        guild = FakeGuild(5, text_channels=[muted, open_channel])
        reviewer.send.side_effect = http_error()

        route = await protocol.deliver(guild, None, reviewer, embed, KEY)

        assert route is DeliveryRoute.ANY_CHANNEL
        muted.send.assert_not_awaited()
        open_channel.send.assert_awaited_once()


class TestLocateReviewer:
    @pytest.mark.asyncio
    async def test_found_in_violating_guild_by_display_name(self, protocol, guild, reviewer):
        assert await protocol.locate_reviewer(guild, "head mod") is reviewer

    @pytest.mark.asyncio
    async def test_found_in_another_guild(self, protocol, bot, guild):
        elsewhere = FakeMember(88, "admin")
        bot.guilds.append(FakeGuild(2, "Other", members=[elsewhere]))

        assert await protocol.locate_reviewer(guild, "admin") is elsewhere

    @pytest.mark.asyncio
    async def test_falls_back_to_user_cache(self, protocol, bot, guild):
        cached = FakeMember(99, "owner")
        bot.users.append(cached)

        assert await protocol.locate_reviewer(guild, "OWNER") is cached

    @pytest.mark.asyncio
    async def test_slow_member_fetch_is_bounded(self, bot, audit_log, guild):
        slow = FakeGuild(3, "Huge", members=[FakeMember(i, f"member{i}") for i in range(100, 110)], fetch_delay=0.2)
        fast_target = FakeMember(55, "admin")
        bot.guilds[:] = [guild, slow, FakeGuild(4, "Small", members=[fast_target])]
        protocol = BanRequestProtocol(bot, audit_log, search_timeout=0.05)

        assert await protocol.locate_reviewer(guild, "admin") is fast_target

    @pytest.mark.asyncio
    async def test_unset_or_unknown_reviewer(self, protocol, guild):
        assert await protocol.locate_reviewer(guild, "") is None
        assert await protocol.locate_reviewer(guild, "nobody") is None


def test_authorized_reviewers(protocol, reviewer, offender):
    settings = ModerationSettings(ban_request_user="Reviewer")
    assert protocol.is_authorized_reviewer(reviewer, settings) is True
    assert protocol.is_authorized_reviewer(offender, settings) is False

    moderator = FakeMember(5, "mod", permissions=("ban_members",))
    assert protocol.is_authorized_reviewer(moderator, ModerationSettings()) is True


class TestResolution:
    @pytest.mark.asyncio
    async def test_approve_bans_present_member(self, protocol, audit_log, offender, guild):
        offender.top_role.position = 1

        result = await protocol.approve(KEY)

        assert result.success is True
        assert result.decision is ReviewDecision.APPROVE
        offender.ban.assert_awaited_once()
        guild.ban.assert_not_awaited()
        assert audit_log.get_logs(entry_type="mod_action")[-1]["action"] == "ban"

    @pytest.mark.asyncio
    async def test_approve_after_offender_left_bans_by_raw_id(self, protocol, audit_log, bot, guild, message, threat, rules, settings):
        await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)
        guild.remove_member(OFFENDER_ID)

        result = await protocol.approve(KEY)

        assert result.success is True
        target = guild.ban.await_args.args[0]
        assert isinstance(target, discord.Object)
        assert target.id == OFFENDER_ID
        assert protocol.get_pending(KEY) is None
        assert audit_log.get_logs(entry_type="mod_action")[-1]["username"] == "offender"

    @pytest.mark.asyncio
    async def test_failed_approve_keeps_pending_entry(self, protocol, guild, message, threat, rules, settings):
        await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)
        guild.remove_member(OFFENDER_ID)
        guild.ban.side_effect = http_error()

        result = await protocol.approve(KEY)

        assert result.success is False
        assert protocol.get_pending(KEY) is not None

    @pytest.mark.asyncio
    async def test_approve_in_unknown_guild(self, protocol):
        result = await protocol.approve(BanRequestKey(user_id=OFFENDER_ID, guild_id=999))
        assert result.success is False

    @pytest.mark.asyncio
    async def test_deny_lifts_mute_and_is_idempotent(self, protocol, audit_log, message, offender, threat, rules, settings):
        offender.top_role.position = 99
        await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        first = await protocol.deny(KEY)
        second = await protocol.deny(KEY)

        assert first.success is True and first.already_resolved is False
        offender.remove_timeout.assert_awaited_once()
        assert second.success is True and second.already_resolved is True
        assert [r["action"] for r in audit_log.get_logs(entry_type="mod_action")].count("ban_denied") == 1

    @pytest.mark.asyncio
    async def test_deny_after_kick_leaves_kick_in_place(self, protocol, message, offender, threat, rules, settings):
        await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        result = await protocol.deny(KEY)

        assert result.success is True
        assert "kicked" in result.message
        offender.remove_timeout.assert_not_awaited()
        assert protocol.pending_requests() == []

    @pytest.mark.asyncio
    async def test_deny_after_restart_still_lifts_mute(self, protocol, audit_log, offender):
        first = await protocol.deny(KEY)
        second = await protocol.deny(KEY)

        assert first.success is True and first.already_resolved is False
        assert "timeout has been removed" in first.message
        offender.remove_timeout.assert_awaited_once()
        assert second.already_resolved is True
        record = audit_log.get_logs(entry_type="mod_action")[-1]
        assert record["action"] == "ban_denied"
        assert record["username"] == "offender"

    @pytest.mark.asyncio
    async def test_deny_after_restart_when_offender_left(self, protocol, guild, offender):
        guild.remove_member(OFFENDER_ID)

        result = await protocol.deny(KEY)

        assert result.success is True
        assert "no longer in the server" in result.message
        offender.remove_timeout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deny_after_approve_is_a_no_op(self, protocol, offender):
        offender.top_role.position = 1
        await protocol.approve(KEY)

        result = await protocol.deny(KEY)

        assert result.already_resolved is True
        offender.remove_timeout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_request_can_be_denied_again(self, protocol, message, offender, threat, rules, settings):
        offender.top_role.position = 99
        await protocol.deny(KEY)
        await protocol.request_ban(message, snapshot_message(message), threat, rules[3], settings)

        result = await protocol.deny(KEY)

        assert result.already_resolved is False
        assert offender.remove_timeout.await_count == 2
