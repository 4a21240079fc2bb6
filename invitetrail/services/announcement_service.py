"""
invitetrail.services.announcement_service — Join/Leave Invite Notices
======================================================================

The bot-side :class:`~invitetrail.services.attribution_service.AttributionSink`.
Resolves the guild's log channel from its settings, builds the embed,
and hands it to the throttle.

Embed construction lives in :mod:`invitetrail.services.embeds`.
Throttle logic lives in :mod:`invitetrail.services.throttle`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.abc import Messageable

from invitetrail.engine.events import JoinAttribution, MemberDeparture
from invitetrail.services.embeds import build_join_embed, build_leave_embed
from invitetrail.services.settings_service import InviteSettings
from invitetrail.services.throttle import NoticeThrottle

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)


class InviteAnnouncer:
    """Posts invite notices to each guild's configured log channel."""

    def __init__(self, bot: commands.Bot, throttle: NoticeThrottle | None = None) -> None:
        self.bot = bot
        self.throttle = throttle or NoticeThrottle()

    def resolve_log_channel(self, settings: InviteSettings) -> Messageable | None:
        """The guild's log channel, or None if unset or not visible to the bot."""
        if not settings.log_channel_id:
            return None
        channel = self.bot.get_channel(settings.log_channel_id)
        if channel is None or not isinstance(channel, Messageable):
            logger.debug(
                "Log channel %d for guild %d not found",
                settings.log_channel_id, settings.guild_id,
            )
            return None
        return channel

    def _member_avatar(self, guild_id: int, member_id: int) -> str | None:
        guild = self.bot.get_guild(guild_id)
        member = guild.get_member(member_id) if guild else None
        return member.display_avatar.url if member else None

    async def on_join(self, settings: InviteSettings, attribution: JoinAttribution) -> None:
        channel = self.resolve_log_channel(settings)
        if channel is None:
            return
        guild = self.bot.get_guild(attribution.guild_id)
        guild_name = guild.name if guild else str(attribution.guild_id)
        embed = build_join_embed(
            attribution,
            settings,
            guild_name,
            self._member_avatar(attribution.guild_id, attribution.member_id),
        )
        await self.throttle.send(channel, embed)

    async def on_leave(self, settings: InviteSettings, departure: MemberDeparture) -> None:
        channel = self.resolve_log_channel(settings)
        if channel is None:
            return
        # The member is already gone from the guild cache; use the user cache.
        user = self.bot.get_user(departure.member_id)
        avatar_url = user.display_avatar.url if user else None
        await self.throttle.send(channel, build_leave_embed(departure, settings, avatar_url))
