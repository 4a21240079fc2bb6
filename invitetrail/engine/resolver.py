"""
invitetrail.engine.resolver — Snapshot Diff Attribution
========================================================

Pure attribution logic.  No Discord I/O, no DB I/O, no logging: the
coordinator decides what to log based on the returned confidence.

Resolution order:
  1. No previous snapshot          → fallback rule (never diff against nothing)
  2. Exactly one positive delta    → that invite (RESOLVED)
  3. Several positive deltas       → largest delta, then smallest code
                                     (RESOLVED, ``ambiguous=True``)
  4. No positive delta             → fallback rule
Fallback rule: first invite in the fresh list, in platform order
(FALLBACK); when the guild has no invites at all, the unknown sentinel
(UNKNOWN).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from invitetrail.constants import UNKNOWN_INVITER_ID, UNKNOWN_INVITER_TAG
from invitetrail.engine.events import Confidence, InviteInfo

__all__ = ["Resolution", "UNKNOWN_RESOLUTION", "compute_deltas", "resolve"]


@dataclass(frozen=True, slots=True)
class Resolution:
    """Output of :func:`resolve`.  Always fully populated."""

    code: str | None
    inviter_id: int
    inviter_tag: str
    confidence: Confidence
    invite: InviteInfo | None = None
    ambiguous: bool = False

    @property
    def uses(self) -> int | None:
        return self.invite.uses if self.invite is not None else None


UNKNOWN_RESOLUTION = Resolution(
    code=None,
    inviter_id=UNKNOWN_INVITER_ID,
    inviter_tag=UNKNOWN_INVITER_TAG,
    confidence=Confidence.UNKNOWN,
)


def _as_invites(fresh: Sequence[InviteInfo] | Mapping[str, int]) -> list[InviteInfo]:
    """Accept either a fetched invite list or a bare code → uses map."""
    if isinstance(fresh, Mapping):
        return [InviteInfo(code=code, uses=uses) for code, uses in fresh.items()]
    return list(fresh)


def compute_deltas(
    old: Mapping[str, int],
    fresh: Sequence[InviteInfo] | Mapping[str, int],
) -> dict[str, int]:
    """Return ``{code: delta}`` for every fresh code whose uses went up.

    Codes missing from *old* count as 0 previous uses.
    """
    deltas: dict[str, int] = {}
    for inv in _as_invites(fresh):
        delta = inv.uses - old.get(inv.code, 0)
        if delta > 0:
            deltas[inv.code] = delta
    return deltas


def _from_invite(invite: InviteInfo, confidence: Confidence, *, ambiguous: bool = False) -> Resolution:
    return Resolution(
        code=invite.code,
        inviter_id=invite.inviter_id,
        inviter_tag=invite.inviter_tag,
        confidence=confidence,
        invite=invite,
        ambiguous=ambiguous,
    )


def _fallback(invites: list[InviteInfo]) -> Resolution:
    if not invites:
        return UNKNOWN_RESOLUTION
    return _from_invite(invites[0], Confidence.FALLBACK)


def resolve(
    old: Mapping[str, int] | None,
    fresh: Sequence[InviteInfo] | Mapping[str, int],
) -> Resolution:
    """Decide which invite a newly arrived member used.

    Parameters
    ----------
    old:
        The cached code → uses map, or ``None`` when the guild has no
        trusted snapshot (cold start or invalidated).
    fresh:
        Invites fetched at event time, in platform order.

    Never raises for "no match"; see the module docstring for the rules.
    """
    invites = _as_invites(fresh)
    if old is None:
        return _fallback(invites)

    deltas = compute_deltas(old, invites)
    if not deltas:
        return _fallback(invites)

    by_code = {inv.code: inv for inv in invites}
    if len(deltas) == 1:
        (code,) = deltas
        return _from_invite(by_code[code], Confidence.RESOLVED)

    code = min(deltas, key=lambda c: (-deltas[c], c))
    return _from_invite(by_code[code], Confidence.RESOLVED, ambiguous=True)
