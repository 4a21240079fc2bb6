"""
invitetrail.bot.invite_source — discord.py Invite Adapter
==========================================================

Translates ``discord.Invite`` objects into :class:`InviteInfo` and
discord.py exceptions into the coordinator's fetch errors.  This is the
only place that knows how invites are listed on Discord.
"""

from __future__ import annotations

import logging

import discord

from invitetrail.constants import UNKNOWN_INVITER_ID, UNKNOWN_INVITER_TAG
from invitetrail.engine.events import InviteInfo
from invitetrail.services.attribution_service import (
    InviteFetchError,
    InviteFetchForbidden,
)

logger = logging.getLogger(__name__)


def invite_info_from_discord(invite: discord.Invite) -> InviteInfo:
    """Normalize a discord.py invite.  ``max_uses == 0`` means unlimited."""
    inviter = invite.inviter
    return InviteInfo(
        code=invite.code,
        uses=invite.uses or 0,
        inviter_id=inviter.id if inviter else UNKNOWN_INVITER_ID,
        inviter_tag=str(inviter) if inviter else UNKNOWN_INVITER_TAG,
        max_uses=invite.max_uses or None,
        expires_at=invite.expires_at,
        created_at=invite.created_at,
    )


class DiscordInviteSource:
    """:class:`InviteSource` backed by ``Guild.invites()``."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def fetch_invites(self, guild_id: int) -> list[InviteInfo]:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise InviteFetchError(f"guild {guild_id} is not in the client cache")
        try:
            invites = await guild.invites()
        except discord.Forbidden as exc:
            raise InviteFetchForbidden(str(exc)) from exc
        except discord.HTTPException as exc:
            raise InviteFetchError(f"HTTP {exc.status}: {exc.text}") from exc
        return [invite_info_from_discord(inv) for inv in invites]
