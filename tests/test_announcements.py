"""
tests/test_announcements.py — Unit Tests for Invite Notices
============================================================

Tests template rendering, the embed builders, the per-channel throttle,
and the announcer's channel resolution.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from invitetrail.constants import DEFAULT_WELCOME_TEMPLATE
from invitetrail.engine.events import Confidence, JoinAttribution, MemberDeparture
from invitetrail.services.announcement_service import InviteAnnouncer
from invitetrail.services.embeds import (
    build_join_embed,
    build_leaderboard_embed,
    build_leave_embed,
    build_member_inviter_embed,
    build_stats_embed,
    inviter_display,
    render_welcome,
)
from invitetrail.services.invite_service import InviteStats, JoinView, LeaderboardRow
from invitetrail.services.settings_service import InviteSettings
from invitetrail.services.throttle import NoticeThrottle


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _attribution(
    *,
    confidence: Confidence = Confidence.RESOLVED,
    inviter_id: int = 22,
    code: str | None = "abc123",
    total: int = 4,
) -> JoinAttribution:
    return JoinAttribution(
        guild_id=1,
        member_id=5,
        member_tag="newbie",
        inviter_id=inviter_id,
        inviter_tag="host",
        code=code,
        total_invites_by_inviter=total,
        confidence=confidence,
        joined_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


def _unknown() -> JoinAttribution:
    return _attribution(confidence=Confidence.UNKNOWN, inviter_id=0, code=None, total=0)


def _settings(
    *,
    log_channel_id: int | None = 100,
    template: str | None = None,
    show_inviter: bool = True,
) -> InviteSettings:
    return InviteSettings(
        guild_id=1,
        enabled=True,
        log_channel_id=log_channel_id,
        template=template,
        show_inviter=show_inviter,
    )


def _make_messageable(channel_id: int = 100) -> MagicMock:
    """Create a mock Messageable channel."""
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


def _field(embed: discord.Embed, name_part: str):
    return next((f for f in embed.fields if name_part in f.name), None)


# ---------------------------------------------------------------------------
# Template rendering
# ---------------------------------------------------------------------------
class TestRenderWelcome:
    def test_all_placeholders(self):
        text = render_welcome(
            "{user}|{server}|{inviter}|{invites}|{invite-code}|{invite-url}",
            _attribution(),
            "Guild",
        )
        assert text == "<@5>|Guild|<@22>|4|abc123|https://discord.gg/abc123"

    def test_default_template(self):
        text = render_welcome(DEFAULT_WELCOME_TEMPLATE, _attribution(), "Guild")
        assert "<@5>" in text
        assert "Guild" in text
        assert "**<@22>**" in text
        assert "**4**" in text

    def test_unknown_inviter(self):
        text = render_welcome("{inviter} {invites} [{invite-code}] [{invite-url}]", _unknown(), "G")
        assert text == "Unknown 0 [] []"

    def test_hidden_inviter(self):
        text = render_welcome("{inviter}/{invites}", _attribution(), "G", show_inviter=False)
        assert text == "Unknown/0"

    def test_unrecognised_placeholder_left_alone(self):
        assert render_welcome("{user} {nope}", _attribution(), "G") == "<@5> {nope}"

    def test_placeholder_in_guild_name_not_expanded(self):
        text = render_welcome("{server} by {inviter}", _attribution(), "{inviter} {invites} club")
        assert text == "{inviter} {invites} club by <@22>"

    def test_inviter_display(self):
        assert inviter_display(_attribution()) == "<@22>"
        assert inviter_display(_unknown()) == "Unknown"
        assert inviter_display(_attribution(), show_inviter=False) == "Unknown"


# ---------------------------------------------------------------------------
# Embed builders
# ---------------------------------------------------------------------------
class TestJoinEmbed:
    def test_resolved(self):
        embed = build_join_embed(_attribution(), _settings(), "Guild", "https://cdn/a.png")
        assert embed.title == "\U0001f44b New Member Joined"
        assert embed.color.value == 0x43B581
        assert embed.thumbnail.url == "https://cdn/a.png"
        assert _field(embed, "Invited By").value == "<@22>"
        assert _field(embed, "Total Invites").value == "4"
        assert embed.footer.text is None

    def test_custom_template(self):
        embed = build_join_embed(_attribution(), _settings(template="Hi {user}!"), "Guild")
        assert embed.description == "Hi <@5>!"

    def test_fallback_footer(self):
        embed = build_join_embed(_attribution(confidence=Confidence.FALLBACK), _settings(), "G")
        assert embed.footer.text == "Inviter is a best guess"

    def test_unknown_has_no_total(self):
        embed = build_join_embed(_unknown(), _settings(), "G")
        assert _field(embed, "Invited By").value == "Unknown"
        assert _field(embed, "Total Invites") is None

    def test_hidden_inviter(self):
        embed = build_join_embed(_attribution(), _settings(show_inviter=False), "G")
        assert _field(embed, "Invited By").value == "Unknown"
        assert _field(embed, "Total Invites") is None


class TestLeaveEmbed:
    def test_with_inviter(self):
        departure = MemberDeparture(guild_id=1, member_id=5, member_tag="gone", inviter_id=22)
        embed = build_leave_embed(departure, _settings())
        assert embed.color.value == 0xF04747
        assert "<@5>" in embed.description
        assert _field(embed, "Was Invited By").value == "<@22>"

    def test_without_inviter(self):
        departure = MemberDeparture(guild_id=1, member_id=5, member_tag="gone")
        assert _field(build_leave_embed(departure, _settings()), "Was Invited By") is None

    def test_hidden_inviter(self):
        departure = MemberDeparture(guild_id=1, member_id=5, member_tag="gone", inviter_id=22)
        embed = build_leave_embed(departure, _settings(show_inviter=False))
        assert _field(embed, "Was Invited By") is None


class TestAnalyticsEmbeds:
    def test_leaderboard_medals(self):
        rows = [LeaderboardRow(i, f"u{i}", 10 - i) for i in range(1, 5)]
        embed = build_leaderboard_embed(rows, "Guild")
        lines = embed.description.splitlines()
        assert lines[0].startswith("\U0001f947 <@1>")
        assert lines[3].startswith("4. <@4>")
        assert embed.footer.text == "Guild"

    def test_member_inviter_naive_timestamp(self):
        view = JoinView(
            guild_id=1, member_id=5, member_tag="m", code="abc", inviter_id=22,
            inviter_tag="host", confidence="resolved", joined_at=datetime(2026, 1, 1),
        )
        embed = build_member_inviter_embed(5, view)
        assert _field(embed, "Invited By").value == "<@22>"
        assert _field(embed, "Joined").value.startswith("<t:")
        assert _field(embed, "Invite Code").value == "`abc`"

    def test_member_inviter_unknown(self):
        view = JoinView(
            guild_id=1, member_id=5, member_tag="m", code=None, inviter_id=0,
            inviter_tag="Unknown", confidence="unknown",
            joined_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        assert _field(build_member_inviter_embed(5, view), "Invited By").value == "Unknown"

    def test_stats(self):
        stats = InviteStats(
            total_members=12, recent_members=3, window_days=7,
            top_inviter=LeaderboardRow(22, "host", 8),
        )
        embed = build_stats_embed(stats, "Guild")
        assert _field(embed, "Total").value == "12"
        assert _field(embed, "Recent (7 days)").value == "3"
        assert "<@22>" in _field(embed, "Top Inviter").value

    def test_stats_without_top(self):
        stats = InviteStats(total_members=0, recent_members=0, window_days=7, top_inviter=None)
        assert _field(build_stats_embed(stats, "G"), "Top Inviter") is None


# ---------------------------------------------------------------------------
# Throttle
# ---------------------------------------------------------------------------
class TestNoticeThrottle:
    def test_window_limit(self):
        throttle = NoticeThrottle(max_per_window=2, window=60)
        assert throttle.is_allowed(1)
        assert throttle.is_allowed(1)
        assert not throttle.is_allowed(1)
        assert throttle.is_allowed(2)

    def test_overflow_is_queued(self):
        throttle = NoticeThrottle(max_per_window=1, window=60)
        ch = _make_messageable(7)
        embed = discord.Embed(title="x")

        async def scenario():
            return await throttle.send(ch, embed), await throttle.send(ch, embed)

        first, second = run_async(scenario())
        assert (first, second) == (True, False)
        assert ch.send.await_count == 1
        assert throttle.pending(7) == 1

    def test_queue_drops_oldest(self):
        throttle = NoticeThrottle(max_queued=2)
        ch = _make_messageable(7)
        embeds = [discord.Embed(title=str(i)) for i in range(3)]
        for e in embeds:
            throttle.enqueue(7, e, ch)
        assert throttle.pending(7) == 2
        assert [e.title for e, _ in throttle._queues[7]] == ["1", "2"]

    def test_drain_sends_when_window_reopens(self):
        throttle = NoticeThrottle(max_per_window=1, window=0)
        ch = _make_messageable(7)
        throttle.enqueue(7, discord.Embed(title="queued"), ch)

        run_async(throttle.drain_once())
        assert ch.send.await_count >= 1
        assert throttle.pending(7) == 0

    def test_send_http_error_is_contained(self):
        throttle = NoticeThrottle()
        ch = _make_messageable(7)
        ch.send.side_effect = discord.HTTPException(
            SimpleNamespace(status=403, reason="Forbidden"), "Missing Access",
        )
        assert run_async(throttle.send(ch, discord.Embed())) is False


# ---------------------------------------------------------------------------
# Announcer
# ---------------------------------------------------------------------------
def _make_bot(channels: dict[int, object] | None = None) -> MagicMock:
    bot = MagicMock()
    bot.get_channel = lambda ch_id: (channels or {}).get(ch_id)
    guild = MagicMock()
    guild.name = "Test Guild"
    guild.get_member.return_value = None
    bot.get_guild.return_value = guild
    bot.get_user.return_value = None
    return bot


class TestInviteAnnouncer:
    def test_resolve_log_channel(self):
        ch = _make_messageable(100)
        announcer = InviteAnnouncer(_make_bot({100: ch}))
        assert announcer.resolve_log_channel(_settings()) is ch
        assert announcer.resolve_log_channel(_settings(log_channel_id=None)) is None
        assert announcer.resolve_log_channel(_settings(log_channel_id=999)) is None

    def test_non_messageable_channel_ignored(self):
        voice = MagicMock(spec=discord.CategoryChannel)
        announcer = InviteAnnouncer(_make_bot({100: voice}))
        assert announcer.resolve_log_channel(_settings()) is None

    def test_on_join_posts_embed(self):
        ch = _make_messageable(100)
        announcer = InviteAnnouncer(_make_bot({100: ch}))
        run_async(announcer.on_join(_settings(), _attribution()))

        ch.send.assert_awaited_once()
        embed = ch.send.call_args.kwargs["embed"]
        assert "Test Guild" in embed.description

    def test_on_join_without_channel_is_noop(self):
        ch = _make_messageable(100)
        announcer = InviteAnnouncer(_make_bot({100: ch}))
        run_async(announcer.on_join(_settings(log_channel_id=None), _attribution()))
        ch.send.assert_not_awaited()

    def test_on_leave_posts_embed(self):
        ch = _make_messageable(100)
        announcer = InviteAnnouncer(_make_bot({100: ch}))
        departure = MemberDeparture(guild_id=1, member_id=5, member_tag="gone", inviter_id=22)
        run_async(announcer.on_leave(_settings(), departure))

        embed = ch.send.call_args.kwargs["embed"]
        assert embed.title == "\U0001f44b Member Left"
