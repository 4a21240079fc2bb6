"""
invitetrail.bot.core — Bot Instance & Cog Loader
=================================================

Defines :class:`InviteTrailBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``),
   and the :class:`AttributionCoordinator` (``bot.coordinator``) so every
   cog can reach them.
2. Loads every cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree (guild-scoped when ``DEV_GUILD_ID`` is
   set, global otherwise).
4. Warms the invite snapshot of every guild with tracking enabled.
5. Starts the notice throttle drain task.
"""

from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from invitetrail.bot.invite_source import DiscordInviteSource
from invitetrail.config import InviteTrailConfig
from invitetrail.services.announcement_service import InviteAnnouncer
from invitetrail.services.attribution_service import AttributionCoordinator
from invitetrail.services.throttle import NoticeThrottle

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "invitetrail.bot.cogs.tracking",
    "invitetrail.bot.cogs.invites",
]


class InviteTrailBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`InviteTrailConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    """

    def __init__(self, cfg: InviteTrailConfig, engine: Engine) -> None:
        # GUILD_INVITES is in default(); GUILD_MEMBERS is privileged and
        # must be enabled in the Developer Portal for join/leave events.
        intents = discord.Intents.default()
        intents.members = True
        intents.invites = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="InviteTrail — who invited whom",
        )

        self.cfg = cfg
        self.engine = engine
        self.announcer = InviteAnnouncer(
            self,
            NoticeThrottle(
                max_per_window=cfg.announce_max_per_window,
                window=cfg.announce_window_seconds,
            ),
        )
        self.coordinator = AttributionCoordinator(
            engine,
            DiscordInviteSource(self),
            self.announcer,
            fetch_timeout=cfg.fetch_timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cog extensions.  One broken cog doesn't take down the bot."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated.

        Also fires again after a gateway resume that lost the session, so
        the warm-up here re-baselines every tracked guild.
        """
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        await self._warm_invite_snapshots()

        self.announcer.throttle.start(asyncio.get_running_loop())
        logger.info("Invite notice drain task started.")

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        self.announcer.throttle.stop()
        await super().close()

    # -----------------------------------------------------------------------
    # Snapshot warm-up
    # -----------------------------------------------------------------------
    async def _warm_invite_snapshots(self) -> None:
        """Baseline the invite snapshot of every tracked guild concurrently."""
        guild_ids = [g.id for g in self.guilds]
        results = await asyncio.gather(
            *(self.coordinator.prime(gid) for gid in guild_ids),
            return_exceptions=True,
        )
        primed = 0
        for gid, result in zip(guild_ids, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Invite warm-up failed for guild %d: %s", gid, result)
            elif result:
                primed += 1
        logger.info("Invite snapshots warmed for %d/%d guilds", primed, len(guild_ids))
