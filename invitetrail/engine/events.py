"""
invitetrail.engine.events — Attribution Value Types
====================================================

Plain value objects shared by the resolver, the coordinator, the
persistence layer, and the notification side.  No Discord or DB types
leak through here: the bot adapts ``discord.Invite`` / ``discord.Member``
into these before anything else sees them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from invitetrail.constants import UNKNOWN_INVITER_ID, UNKNOWN_INVITER_TAG

__all__ = [
    "Confidence",
    "InviteInfo",
    "JoinAttribution",
    "MemberDeparture",
    "MemberJoin",
]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Confidence(enum.StrEnum):
    """How an attribution was obtained."""
    RESOLVED = "resolved"  # clean positive delta
    FALLBACK = "fallback"  # first-invite rule (cold cache or no delta)
    UNKNOWN = "unknown"    # nothing to attribute to


# ---------------------------------------------------------------------------
# InviteInfo — one invite as reported by the platform
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class InviteInfo:
    """A single invite link at fetch time."""

    code: str
    uses: int = 0
    inviter_id: int = UNKNOWN_INVITER_ID
    inviter_tag: str = UNKNOWN_INVITER_TAG
    max_uses: int | None = None  # None = unlimited
    expires_at: datetime | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Incoming lifecycle events
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MemberJoin:
    """A member arrived in a guild."""

    guild_id: int
    member_id: int
    member_tag: str
    joined_at: datetime = field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Outgoing results (to the notification collaborator)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class JoinAttribution:
    """Result of attributing one join.

    ``confidence`` tells the rendering side whether to show an inviter
    at all.  For ``UNKNOWN`` the inviter fields hold the sentinel.
    """

    guild_id: int
    member_id: int
    member_tag: str
    inviter_id: int
    inviter_tag: str
    code: str | None
    total_invites_by_inviter: int
    confidence: Confidence
    joined_at: datetime = field(default_factory=_utcnow)

    @property
    def inviter_known(self) -> bool:
        return self.confidence is not Confidence.UNKNOWN and self.inviter_id != UNKNOWN_INVITER_ID


@dataclass(frozen=True, slots=True)
class MemberDeparture:
    """A member left; ``inviter_id`` is None when no join was ever recorded."""

    guild_id: int
    member_id: int
    member_tag: str
    inviter_id: int | None = None
    inviter_tag: str | None = None
    code: str | None = None
    joined_at: datetime | None = None
