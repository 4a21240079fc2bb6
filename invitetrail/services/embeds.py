"""
invitetrail.services.embeds — Discord embed builders for invite notices
========================================================================

All embed construction and template rendering lives here so the
announcement service only supplies data.
"""

from __future__ import annotations

import re
from datetime import UTC

import discord

from invitetrail.constants import (
    COLOR_INFO,
    COLOR_JOIN,
    COLOR_LEAVE,
    RANK_BADGES,
    UNKNOWN_INVITER_TAG,
    invite_url,
)
from invitetrail.engine.events import Confidence, JoinAttribution, MemberDeparture
from invitetrail.services.invite_service import InviteStats, JoinView, LeaderboardRow
from invitetrail.services.settings_service import InviteSettings

_PLACEHOLDER = re.compile(r"\{([a-z-]+)\}")


def inviter_display(attribution: JoinAttribution, show_inviter: bool = True) -> str:
    """Mention for the inviter, or ``Unknown`` when it shouldn't be shown."""
    if not show_inviter or not attribution.inviter_known:
        return UNKNOWN_INVITER_TAG
    return f"<@{attribution.inviter_id}>"


def render_welcome(
    template: str,
    attribution: JoinAttribution,
    guild_name: str,
    *,
    show_inviter: bool = True,
) -> str:
    """Fill the welcome *template* placeholders for one join.

    Supported: ``{user}`` ``{server}`` ``{inviter}`` ``{invites}``
    ``{invite-code}`` ``{invite-url}``.  Unknown placeholders are left
    as written.
    """
    known = show_inviter and attribution.inviter_known
    replacements = {
        "user": f"<@{attribution.member_id}>",
        "server": guild_name,
        "inviter": inviter_display(attribution, show_inviter),
        "invites": str(attribution.total_invites_by_inviter if known else 0),
        "invite-code": attribution.code or "",
        "invite-url": invite_url(attribution.code),
    }
    # Single pass: substituted values are never re-scanned
    return _PLACEHOLDER.sub(
        lambda m: replacements.get(m.group(1), m.group(0)), template,
    )


def build_join_embed(
    attribution: JoinAttribution,
    settings: InviteSettings,
    guild_name: str,
    avatar_url: str | None = None,
) -> discord.Embed:
    """Build the "new member joined" notice for the log channel."""
    embed = discord.Embed(
        title="\U0001f44b New Member Joined",
        description=render_welcome(
            settings.effective_template,
            attribution,
            guild_name,
            show_inviter=settings.show_inviter,
        ),
        color=discord.Color(COLOR_JOIN),
        timestamp=attribution.joined_at,
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)

    invited_by = inviter_display(attribution, settings.show_inviter)
    embed.add_field(
        name="\U0001f464 Member",
        value=f"<@{attribution.member_id}> (`{attribution.member_tag}`)",
        inline=True,
    )
    embed.add_field(name="\U0001f3af Invited By", value=invited_by, inline=True)
    if settings.show_inviter and attribution.inviter_known:
        embed.add_field(
            name="\U0001f4ca Total Invites",
            value=str(attribution.total_invites_by_inviter),
            inline=True,
        )
    if attribution.confidence is Confidence.FALLBACK:
        embed.set_footer(text="Inviter is a best guess")
    return embed


def build_leave_embed(
    departure: MemberDeparture,
    settings: InviteSettings,
    avatar_url: str | None = None,
) -> discord.Embed:
    """Build the "member left" notice, naming the former inviter if known."""
    embed = discord.Embed(
        title="\U0001f44b Member Left",
        description=f"<@{departure.member_id}> (`{departure.member_tag}`) has left the server.",
        color=discord.Color(COLOR_LEAVE),
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    if settings.show_inviter and departure.inviter_id:
        embed.add_field(
            name="\U0001f3af Was Invited By",
            value=f"<@{departure.inviter_id}>",
            inline=True,
        )
    return embed


def build_leaderboard_embed(rows: list[LeaderboardRow], guild_name: str) -> discord.Embed:
    """Top inviters, medals for the first three."""
    lines = []
    for i, row in enumerate(rows, 1):
        medal = RANK_BADGES[i - 1] if i <= len(RANK_BADGES) else f"{i}."
        lines.append(f"{medal} <@{row.inviter_id}> - **{row.member_count}** members")
    embed = discord.Embed(
        title="\U0001f3c6 Invite Leaderboard",
        description="\n".join(lines) or "No invite data yet.",
        color=discord.Color(COLOR_INFO),
    )
    embed.set_footer(text=guild_name)
    return embed


def build_member_inviter_embed(
    member_id: int,
    record: JoinView,
    avatar_url: str | None = None,
) -> discord.Embed:
    """Who invited *member_id*, from their latest join row."""
    embed = discord.Embed(
        title="\U0001f44b User Invite Information",
        description=f"Information about who invited <@{member_id}>",
        color=discord.Color(COLOR_INFO),
    )
    invited_by = (
        f"<@{record.inviter_id}>" if record.inviter_id else UNKNOWN_INVITER_TAG
    )
    joined = record.joined_at
    if joined.tzinfo is None:  # SQLite drops the offset
        joined = joined.replace(tzinfo=UTC)
    embed.add_field(name="\U0001f3af Invited By", value=invited_by, inline=True)
    embed.add_field(
        name="\U0001f4c5 Joined",
        value=discord.utils.format_dt(joined, style="R"),
        inline=True,
    )
    embed.add_field(
        name="\U0001f517 Invite Code",
        value=f"`{record.code}`" if record.code else "—",
        inline=True,
    )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_stats_embed(stats: InviteStats, guild_name: str) -> discord.Embed:
    embed = discord.Embed(
        title="\U0001f4ca Server Invite Statistics",
        description=f"Invite statistics for **{guild_name}**",
        color=discord.Color(COLOR_INFO),
    )
    embed.add_field(name="\U0001f465 Total Tracked Joins", value=str(stats.total_members), inline=True)
    embed.add_field(
        name=f"\U0001f4c6 Recent ({stats.window_days} days)",
        value=str(stats.recent_members),
        inline=True,
    )
    if stats.top_inviter is not None:
        embed.add_field(
            name="\U0001f3c6 Top Inviter",
            value=(
                f"<@{stats.top_inviter.inviter_id}> with "
                f"**{stats.top_inviter.member_count}** invites"
            ),
            inline=False,
        )
    return embed
