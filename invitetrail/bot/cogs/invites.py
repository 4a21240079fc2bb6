"""
invitetrail.bot.cogs.invites — Read-only Invite Analytics Commands
===================================================================

Hybrid commands over the persisted attribution journal:
- /invite-leaderboard — Top inviters by distinct members
- /invite-stats — Total and recent tracked joins, top inviter
- /invited-by — Who invited a given member

Configuration (enable, log channel, template) is done through the admin
API, not from chat.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from invitetrail.database.engine import run_db
from invitetrail.services import invite_service
from invitetrail.services.embeds import (
    build_leaderboard_embed,
    build_member_inviter_embed,
    build_stats_embed,
)
from invitetrail.services.invite_service import InviteDataUnavailable

if TYPE_CHECKING:
    from invitetrail.bot.core import InviteTrailBot

_UNAVAILABLE = "❌ Invite data is unavailable right now. Please try again later."


class Invites(commands.Cog, name="Invites"):
    """Invite leaderboards and lookups."""

    def __init__(self, bot: InviteTrailBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /invite-leaderboard
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="invite-leaderboard",
        description="Show the top inviters of this server.",
    )
    @commands.guild_only()
    async def invite_leaderboard(self, ctx: commands.Context) -> None:
        assert ctx.guild is not None
        try:
            rows = await run_db(
                invite_service.leaderboard,
                self.bot.engine,
                ctx.guild.id,
                self.bot.cfg.leaderboard_size,
            )
        except InviteDataUnavailable:
            await ctx.send(_UNAVAILABLE, ephemeral=True)
            return

        if not rows:
            await ctx.send(
                "❌ No invite data found. Members need to join through "
                "a tracked invite first.",
                ephemeral=True,
            )
            return
        await ctx.send(embed=build_leaderboard_embed(rows, ctx.guild.name))

    # -------------------------------------------------------------------
    # /invite-stats
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="invite-stats",
        description="Show invite statistics for this server.",
    )
    @commands.guild_only()
    async def invite_stats(self, ctx: commands.Context) -> None:
        assert ctx.guild is not None
        try:
            stats = await run_db(
                invite_service.stats,
                self.bot.engine,
                ctx.guild.id,
                self.bot.cfg.recent_window_days,
            )
        except InviteDataUnavailable:
            await ctx.send(_UNAVAILABLE, ephemeral=True)
            return
        await ctx.send(embed=build_stats_embed(stats, ctx.guild.name))

    # -------------------------------------------------------------------
    # /invited-by
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="invited-by",
        description="Show who invited a member.",
    )
    @app_commands.describe(member="The member to look up")
    @commands.guild_only()
    async def invited_by(self, ctx: commands.Context, member: discord.Member) -> None:
        assert ctx.guild is not None
        try:
            record = await run_db(
                invite_service.latest_inviter_for,
                self.bot.engine,
                ctx.guild.id,
                member.id,
            )
        except InviteDataUnavailable:
            await ctx.send(_UNAVAILABLE, ephemeral=True)
            return

        if record is None:
            await ctx.send(
                f"❌ No invite information found for <@{member.id}>. They might "
                "have joined before invite tracking was set up.",
                ephemeral=True,
            )
            return
        await ctx.send(
            embed=build_member_inviter_embed(member.id, record, member.display_avatar.url)
        )


async def setup(bot: InviteTrailBot) -> None:
    await bot.add_cog(Invites(bot))
