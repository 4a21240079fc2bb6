"""
invitetrail.bot.cogs.tracking — Invite & Membership Gateway Listeners
======================================================================

Feeds GUILD_INVITE_CREATE / GUILD_INVITE_DELETE and GUILD_MEMBER_ADD /
GUILD_MEMBER_REMOVE into the :class:`AttributionCoordinator`.  Requires
the GUILD_MEMBERS privileged intent and the Manage Server permission
(to list invites).

Bot accounts are ignored: they are added through OAuth, never through
an invite, and would otherwise be attributed by the fallback rule.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from invitetrail.bot.invite_source import invite_info_from_discord
from invitetrail.engine.events import MemberJoin

if TYPE_CHECKING:
    from invitetrail.bot.core import InviteTrailBot

logger = logging.getLogger(__name__)


class Tracking(commands.Cog, name="Tracking"):
    """Routes invite and membership events to the attribution coordinator."""

    def __init__(self, bot: InviteTrailBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        """GUILD_MEMBER_ADD → attribute the join."""
        try:
            if member.bot:
                return
            await self.bot.coordinator.member_joined(MemberJoin(
                guild_id=member.guild.id,
                member_id=member.id,
                member_tag=str(member),
                joined_at=member.joined_at or discord.utils.utcnow(),
            ))
        except Exception:
            logger.exception(
                "Error processing member_join for %s", member.id,
                extra={"event_type": "member_join", "user_id": member.id},
            )

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        """GUILD_MEMBER_REMOVE → forward the member's inviter, if any."""
        try:
            if member.bot:
                return
            await self.bot.coordinator.member_left(member.guild.id, member.id, str(member))
        except Exception:
            logger.exception(
                "Error processing member_leave for %s", member.id,
                extra={"event_type": "member_leave", "user_id": member.id},
            )

    @commands.Cog.listener()
    async def on_invite_create(self, invite: discord.Invite) -> None:
        if invite.guild is None:
            return
        try:
            await self.bot.coordinator.invite_created(
                invite.guild.id, invite_info_from_discord(invite),
            )
        except Exception:
            logger.exception("Error processing invite_create for %s", invite.code)

    @commands.Cog.listener()
    async def on_invite_delete(self, invite: discord.Invite) -> None:
        if invite.guild is None:
            return
        try:
            await self.bot.coordinator.invite_deleted(invite.guild.id, invite.code)
        except Exception:
            logger.exception("Error processing invite_delete for %s", invite.code)

    @commands.Cog.listener()
    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        """Re-arm a permission-degraded guild when one of the bot's roles changes."""
        guild = after.guild
        try:
            if not self.bot.coordinator.is_degraded(guild.id):
                return
            if guild.me is None or after not in guild.me.roles:
                return
            if after.permissions.manage_guild or after.permissions.administrator:
                await self.bot.coordinator.reset(guild.id)
                await self.bot.coordinator.prime(guild.id)
        except Exception:
            logger.exception("Error re-arming invite tracking for guild %d", guild.id)

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Baseline invites for a guild the bot was just added to."""
        try:
            await self.bot.coordinator.prime(guild.id)
        except Exception:
            logger.exception("Invite warm-up failed for new guild %d", guild.id)


async def setup(bot: InviteTrailBot) -> None:
    await bot.add_cog(Tracking(bot))
