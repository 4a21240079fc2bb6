"""
invitetrail.services.attribution_service — Invite Attribution Coordinator
==========================================================================

Turns gateway lifecycle events into attributions.  For every guild it
keeps a small state machine::

    UNINITIALIZED ──join/prime──▶ READY ──invite create/delete──▶ STALE
                                    ▲                               │
                                    └────────────join───────────────┘

A join runs ``fetch → resolve → persist → replace snapshot`` as one unit
under the guild's :class:`asyncio.Lock`, so two joins in the same guild
can never interleave their diffs.  Different guilds never share a lock.

A STALE guild keeps its last snapshot aside as a lower bound: counters
only grow, created invites start at 0 and deleted ones just vanish, so
the next join still diffs against it.  Only a guild with no baseline at
all (never fetched, or tracking switched off meanwhile) uses the
fallback rule.

Failure containment:
- Fetch failures (HTTP errors, timeouts) leave the state untouched, write
  no join row, and forward an ``unknown`` attribution.
- A permission failure additionally marks the guild *degraded*: joins
  skip the fetch until :meth:`AttributionCoordinator.reset` is called.
- Persistence failures are logged; the notification still goes out.
- Notification failures are logged and swallowed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import Engine

from invitetrail.constants import UNKNOWN_INVITER_ID, UNKNOWN_INVITER_TAG
from invitetrail.database.engine import run_db
from invitetrail.engine.events import (
    Confidence,
    InviteInfo,
    JoinAttribution,
    MemberDeparture,
    MemberJoin,
)
from invitetrail.engine.resolver import Resolution, resolve
from invitetrail.engine.snapshot import InviteSnapshot, SnapshotStore
from invitetrail.services.invite_service import (
    InviteDataUnavailable,
    JoinEntry,
    latest_inviter_for,
    record_join,
    upsert_invite,
)
from invitetrail.services.settings_service import InviteSettings, get_invite_settings

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------
class InviteFetchError(Exception):
    """Invites for a guild could not be fetched (transient)."""


class InviteFetchForbidden(InviteFetchError):
    """The bot is not allowed to list the guild's invites."""


class InviteSource(Protocol):
    async def fetch_invites(self, guild_id: int) -> Sequence[InviteInfo]:
        """Current invites of *guild_id*, in platform order."""
        ...


class AttributionSink(Protocol):
    async def on_join(self, settings: InviteSettings, attribution: JoinAttribution) -> None: ...

    async def on_leave(self, settings: InviteSettings, departure: MemberDeparture) -> None: ...


class CommunityState(enum.StrEnum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STALE = "stale"


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------
class AttributionCoordinator:
    """Per-guild serialized invite attribution.

    Parameters
    ----------
    engine:
        SQLAlchemy engine for persistence and settings reads.
    source:
        Where fresh invite lists come from (the Discord REST API in the bot).
    sink:
        Receives join/leave results; optional.
    store:
        Snapshot store; a private one is created when omitted.
    fetch_timeout:
        Seconds before a fetch is abandoned and treated as failed.
    """

    def __init__(
        self,
        engine: Engine,
        source: InviteSource,
        sink: AttributionSink | None = None,
        *,
        store: SnapshotStore | None = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._engine = engine
        self._source = source
        self._sink = sink
        self.store = store if store is not None else SnapshotStore()
        self._fetch_timeout = fetch_timeout
        self._locks: dict[int, asyncio.Lock] = {}
        self._states: dict[int, CommunityState] = {}
        self._degraded: set[int] = set()
        self._stale_baselines: dict[int, InviteSnapshot] = {}

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------
    def state(self, guild_id: int) -> CommunityState:
        return self._states.get(guild_id, CommunityState.UNINITIALIZED)

    def is_degraded(self, guild_id: int) -> bool:
        return guild_id in self._degraded

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _lock_for(self, guild_id: int) -> asyncio.Lock:
        return self._locks.setdefault(guild_id, asyncio.Lock())

    async def _load_settings(self, guild_id: int) -> InviteSettings | None:
        try:
            return await run_db(get_invite_settings, self._engine, guild_id)
        except Exception:
            logger.exception("Could not read invite settings for guild %d", guild_id)
            return None

    async def _tracking_settings(self, guild_id: int) -> InviteSettings | None:
        """Settings if tracking is enabled for the guild, else None."""
        settings = await self._load_settings(guild_id)
        if settings is None or not settings.enabled:
            return None
        return settings

    async def _fetch(self, guild_id: int) -> list[InviteInfo]:
        invites = await asyncio.wait_for(
            self._source.fetch_invites(guild_id), timeout=self._fetch_timeout,
        )
        return list(invites)

    async def _try_fetch(self, guild_id: int) -> list[InviteInfo] | None:
        """Fetch fresh invites; None on any failure (already logged)."""
        try:
            return await self._fetch(guild_id)
        except InviteFetchForbidden:
            self._degraded.add(guild_id)
            logger.warning(
                "Missing permission to list invites in guild %d — "
                "attribution degraded to 'unknown' until reset",
                guild_id,
            )
        except InviteFetchError as exc:
            logger.warning("Invite fetch failed for guild %d: %s", guild_id, exc)
        except TimeoutError:
            logger.warning(
                "Invite fetch for guild %d timed out after %.1fs",
                guild_id, self._fetch_timeout,
            )
        except Exception:
            logger.exception("Unexpected error fetching invites for guild %d", guild_id)
        return None

    def _mark_stale(self, guild_id: int) -> None:
        current = self.store.get(guild_id)
        if current is not None:
            self._stale_baselines[guild_id] = current
        self.store.invalidate(guild_id)
        if self.state(guild_id) is CommunityState.READY:
            self._states[guild_id] = CommunityState.STALE

    def _forget(self, guild_id: int) -> None:
        """Drop every baseline; the next join starts from UNINITIALIZED."""
        self.store.invalidate(guild_id)
        self._stale_baselines.pop(guild_id, None)
        self._states.pop(guild_id, None)

    def _baseline(self, guild_id: int) -> InviteSnapshot | None:
        current = self.store.get(guild_id)
        if current is not None:
            return current
        return self._stale_baselines.get(guild_id)

    def _store_fresh(self, guild_id: int, fresh: list[InviteInfo]) -> None:
        self.store.replace(guild_id, InviteSnapshot.capture(guild_id, fresh))
        self._stale_baselines.pop(guild_id, None)
        self._states[guild_id] = CommunityState.READY

    def _unknown(self, event: MemberJoin) -> JoinAttribution:
        return JoinAttribution(
            guild_id=event.guild_id,
            member_id=event.member_id,
            member_tag=event.member_tag,
            inviter_id=UNKNOWN_INVITER_ID,
            inviter_tag=UNKNOWN_INVITER_TAG,
            code=None,
            total_invites_by_inviter=0,
            confidence=Confidence.UNKNOWN,
            joined_at=event.joined_at,
        )

    async def _persist(self, event: MemberJoin, resolution: Resolution) -> int:
        entry = JoinEntry(
            guild_id=event.guild_id,
            member_id=event.member_id,
            member_tag=event.member_tag,
            code=resolution.code,
            inviter_id=resolution.inviter_id,
            inviter_tag=resolution.inviter_tag,
            confidence=resolution.confidence,
            joined_at=event.joined_at,
        )
        try:
            return await run_db(record_join, self._engine, entry, resolution.invite)
        except Exception:
            logger.exception(
                "Failed to persist join of member %d in guild %d",
                event.member_id, event.guild_id,
                extra={"event_type": "member_join", "user_id": event.member_id},
            )
            return 0

    async def _attribute(self, event: MemberJoin) -> JoinAttribution:
        """fetch → resolve → persist → replace.  Caller holds the guild lock."""
        guild_id = event.guild_id
        if guild_id in self._degraded:
            logger.debug("Guild %d is degraded; skipping invite fetch", guild_id)
            return self._unknown(event)

        previous = self._baseline(guild_id)
        fresh = await self._try_fetch(guild_id)
        if fresh is None:
            return self._unknown(event)

        resolution = resolve(previous.code_to_uses if previous is not None else None, fresh)
        if previous is None:
            logger.info(
                "No trusted snapshot for guild %d (%s); join of %d attributed by fallback",
                guild_id, self.state(guild_id), event.member_id,
            )
        elif resolution.ambiguous:
            logger.info(
                "Several invites advanced in guild %d; picked %s for member %d",
                guild_id, resolution.code, event.member_id,
            )
        elif resolution.confidence is Confidence.FALLBACK:
            logger.info(
                "No invite usage changed in guild %d; fallback to %s for member %d",
                guild_id, resolution.code, event.member_id,
            )

        total = await self._persist(event, resolution)
        self._store_fresh(guild_id, fresh)

        return JoinAttribution(
            guild_id=guild_id,
            member_id=event.member_id,
            member_tag=event.member_tag,
            inviter_id=resolution.inviter_id,
            inviter_tag=resolution.inviter_tag,
            code=resolution.code,
            total_invites_by_inviter=total,
            confidence=resolution.confidence,
            joined_at=event.joined_at,
        )

    # -------------------------------------------------------------------
    # Public API — called by the tracking cog
    # -------------------------------------------------------------------
    async def prime(self, guild_id: int) -> bool:
        """Fetch and store a baseline snapshot for an enabled guild.

        Returns True when the guild ended up READY.
        """
        if await self._tracking_settings(guild_id) is None:
            return False
        async with self._lock_for(guild_id):
            if guild_id in self._degraded:
                return False
            fresh = await self._try_fetch(guild_id)
            if fresh is None:
                return False
            self._store_fresh(guild_id, fresh)
        logger.info("Cached %d invites for guild %d", len(fresh), guild_id)
        return True

    async def member_joined(self, event: MemberJoin) -> JoinAttribution | None:
        """Attribute a join.  Returns None when tracking is disabled."""
        settings = await self._tracking_settings(event.guild_id)
        if settings is None:
            # Joins while disabled go unobserved, so any old baseline is void
            async with self._lock_for(event.guild_id):
                self._forget(event.guild_id)
            return None

        async with self._lock_for(event.guild_id):
            attribution = await self._attribute(event)

        logger.info(
            "Member %s joined guild %d via %s (inviter %d, %s)",
            event.member_tag, event.guild_id, attribution.code,
            attribution.inviter_id, attribution.confidence,
        )
        if self._sink is not None:
            try:
                await self._sink.on_join(settings, attribution)
            except Exception:
                logger.exception("Join notification failed for member %d", event.member_id)
        return attribution

    async def member_left(
        self, guild_id: int, member_id: int, member_tag: str,
    ) -> MemberDeparture | None:
        """Look up who invited a departing member and forward it."""
        settings = await self._tracking_settings(guild_id)
        if settings is None:
            return None

        async with self._lock_for(guild_id):
            try:
                record = await run_db(latest_inviter_for, self._engine, guild_id, member_id)
            except InviteDataUnavailable:
                record = None
            except Exception:
                logger.exception("Inviter lookup failed for member %d", member_id)
                record = None

        if record is None:
            departure = MemberDeparture(guild_id=guild_id, member_id=member_id, member_tag=member_tag)
        else:
            departure = MemberDeparture(
                guild_id=guild_id,
                member_id=member_id,
                member_tag=member_tag,
                inviter_id=record.inviter_id,
                inviter_tag=record.inviter_tag,
                code=record.code,
                joined_at=record.joined_at,
            )

        if self._sink is not None:
            try:
                await self._sink.on_leave(settings, departure)
            except Exception:
                logger.exception("Leave notification failed for member %d", member_id)
        return departure

    async def invite_created(self, guild_id: int, invite: InviteInfo) -> None:
        """Invalidate the snapshot and record the new invite."""
        async with self._lock_for(guild_id):
            self._mark_stale(guild_id)
        logger.debug("Invite %s created in guild %d; snapshot invalidated", invite.code, guild_id)

        if await self._tracking_settings(guild_id) is None:
            return
        try:
            await run_db(upsert_invite, self._engine, guild_id, invite)
        except Exception:
            logger.exception("Failed to save invite %s for guild %d", invite.code, guild_id)

    async def invite_deleted(self, guild_id: int, code: str) -> None:
        async with self._lock_for(guild_id):
            self._mark_stale(guild_id)
        logger.debug("Invite %s deleted in guild %d; snapshot invalidated", code, guild_id)

    async def reset(self, guild_id: int) -> None:
        """Forget degradation and cached data after a reconfiguration."""
        async with self._lock_for(guild_id):
            was_degraded = guild_id in self._degraded
            self._degraded.discard(guild_id)
            self._mark_stale(guild_id)
        if was_degraded:
            logger.info("Invite tracking for guild %d re-armed after reconfiguration", guild_id)
