"""
invitetrail.engine.snapshot — Per-Guild Invite Usage Snapshots
===============================================================

The cache half of the reconciliation: for each guild, the code → uses
map observed at the last successful fetch.  Snapshots are replaced
wholesale; they are never patched field by field.  Usage counters are
monotonic and owned by Discord, so the freshest full read always wins.

``get()`` returning ``None`` (never fetched, or invalidated) is a
different state from an empty snapshot (the guild has zero invites).
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from invitetrail.engine.events import InviteInfo


@dataclass(frozen=True, slots=True)
class InviteSnapshot:
    """Full point-in-time copy of a guild's code → uses map.

    ``code_to_uses`` keeps the platform's ordering and is read-only.
    """

    guild_id: int
    code_to_uses: Mapping[str, int]
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def capture(cls, guild_id: int, invites: Iterable[InviteInfo]) -> InviteSnapshot:
        """Build a snapshot from a fetched invite list."""
        return cls(
            guild_id=guild_id,
            code_to_uses=MappingProxyType({inv.code: inv.uses for inv in invites}),
        )

    def __len__(self) -> int:
        return len(self.code_to_uses)


class SnapshotStore:
    """Thread-safe keyed store of :class:`InviteSnapshot` per guild.

    Usage::

        store = SnapshotStore()
        store.replace(guild_id, InviteSnapshot.capture(guild_id, invites))
        old = store.get(guild_id)     # None on cold start
        store.invalidate(guild_id)    # after invite create/delete
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: dict[int, InviteSnapshot] = {}

    def get(self, guild_id: int) -> InviteSnapshot | None:
        with self._lock:
            return self._snapshots.get(guild_id)

    def replace(self, guild_id: int, snapshot: InviteSnapshot) -> None:
        """Overwrite the guild's snapshot.  Last writer wins."""
        if snapshot.guild_id != guild_id:
            raise ValueError(
                f"Snapshot for guild {snapshot.guild_id} stored under guild {guild_id}"
            )
        with self._lock:
            self._snapshots[guild_id] = snapshot

    def invalidate(self, guild_id: int) -> bool:
        """Drop the guild's snapshot.  Returns True if one was held."""
        with self._lock:
            return self._snapshots.pop(guild_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()

    def __contains__(self, guild_id: object) -> bool:
        with self._lock:
            return guild_id in self._snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
