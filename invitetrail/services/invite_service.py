"""
invitetrail.services.invite_service — Invite & Join Persistence
================================================================

Durable storage of invite metadata and the join attribution journal,
plus the aggregate reads built on top of it (leaderboard, stats,
per-member inviter lookup).

All functions are synchronous — call via ``await run_db(func, engine, …)``.

Write semantics:
- :func:`upsert_invite` is idempotent on ``(guild_id, code)``.
- :func:`append_join` always inserts; a rejoin is a real event.

Read semantics:
- Aggregates count **distinct** ``member_id`` so rejoins never inflate
  an inviter's total.
- A failed query raises :class:`InviteDataUnavailable` instead of
  returning an empty result, so callers can tell "no data" from
  "could not ask".
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, distinct, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from invitetrail.constants import UNKNOWN_INVITER_ID
from invitetrail.database.engine import get_session
from invitetrail.database.models import InviteRecord, JoinRecord
from invitetrail.engine.events import Confidence, InviteInfo

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW_DAYS = 7


class InviteDataUnavailable(RuntimeError):
    """An invite analytics query could not be answered."""


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class JoinEntry:
    """Everything needed to append one row to ``invite_joins``."""

    guild_id: int
    member_id: int
    member_tag: str
    code: str | None
    inviter_id: int
    inviter_tag: str
    confidence: Confidence
    joined_at: datetime


@dataclass(frozen=True, slots=True)
class JoinView:
    """Read-side copy of a :class:`JoinRecord` row."""

    guild_id: int
    member_id: int
    member_tag: str | None
    code: str | None
    inviter_id: int
    inviter_tag: str | None
    confidence: str
    joined_at: datetime


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    inviter_id: int
    inviter_tag: str | None
    member_count: int


@dataclass(frozen=True, slots=True)
class InviteStats:
    total_members: int
    recent_members: int
    window_days: int
    top_inviter: LeaderboardRow | None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
@contextmanager
def _reading(engine: Engine, what: str) -> Iterator[Session]:
    """Session for a read; DB errors become :class:`InviteDataUnavailable`."""
    try:
        with get_session(engine) as session:
            yield session
    except SQLAlchemyError as exc:
        logger.warning("Invite query failed (%s): %s", what, exc)
        raise InviteDataUnavailable(f"{what} is unavailable") from exc


def _join_view(row: JoinRecord) -> JoinView:
    return JoinView(
        guild_id=row.guild_id,
        member_id=row.member_id,
        member_tag=row.member_tag,
        code=row.code,
        inviter_id=row.inviter_id,
        inviter_tag=row.inviter_tag,
        confidence=row.confidence,
        joined_at=row.joined_at,
    )


def _join_row(entry: JoinEntry) -> JoinRecord:
    return JoinRecord(
        guild_id=entry.guild_id,
        member_id=entry.member_id,
        member_tag=entry.member_tag,
        code=entry.code,
        inviter_id=entry.inviter_id,
        inviter_tag=entry.inviter_tag,
        confidence=str(entry.confidence),
        joined_at=entry.joined_at,
    )


def _apply_invite(session: Session, guild_id: int, invite: InviteInfo) -> InviteRecord:
    """Insert or update the ``(guild_id, code)`` row inside *session*."""
    row = session.scalar(
        select(InviteRecord).where(
            InviteRecord.guild_id == guild_id,
            InviteRecord.code == invite.code,
        )
    )
    if row is None:
        row = InviteRecord(
            guild_id=guild_id,
            code=invite.code,
            inviter_id=invite.inviter_id,
            inviter_tag=invite.inviter_tag,
            uses=invite.uses,
            max_uses=invite.max_uses,
            expires_at=invite.expires_at,
        )
        if invite.created_at is not None:
            row.created_at = invite.created_at
        session.add(row)
        return row

    row.uses = invite.uses
    row.max_uses = invite.max_uses
    row.expires_at = invite.expires_at
    # Invites first seen without an inviter (widget/vanity) keep the tag
    # from the first time an inviter shows up.
    if row.inviter_id == UNKNOWN_INVITER_ID and invite.inviter_id != UNKNOWN_INVITER_ID:
        row.inviter_id = invite.inviter_id
        row.inviter_tag = invite.inviter_tag
    return row


def _count_invited(session: Session, guild_id: int, inviter_id: int) -> int:
    if inviter_id == UNKNOWN_INVITER_ID:
        return 0
    return session.scalar(
        select(func.count(distinct(JoinRecord.member_id))).where(
            JoinRecord.guild_id == guild_id,
            JoinRecord.inviter_id == inviter_id,
        )
    ) or 0


def _leaderboard_rows(session: Session, guild_id: int, limit: int) -> list[LeaderboardRow]:
    member_count = func.count(distinct(JoinRecord.member_id)).label("member_count")
    rows = session.execute(
        select(JoinRecord.inviter_id, func.max(JoinRecord.inviter_tag), member_count)
        .where(
            JoinRecord.guild_id == guild_id,
            JoinRecord.inviter_id != UNKNOWN_INVITER_ID,
        )
        .group_by(JoinRecord.inviter_id)
        .order_by(member_count.desc(), JoinRecord.inviter_id.asc())
        .limit(limit)
    ).all()
    return [
        LeaderboardRow(inviter_id=r[0], inviter_tag=r[1], member_count=r[2])
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def upsert_invite(engine: Engine, guild_id: int, invite: InviteInfo) -> None:
    """Update the invite row for ``(guild_id, invite.code)`` or insert it."""
    try:
        with get_session(engine) as session:
            _apply_invite(session, guild_id, invite)
    except IntegrityError:
        # Another writer inserted the same code between our SELECT and
        # INSERT; the row exists now, so update it.
        logger.debug("Invite %s in guild %d inserted concurrently; updating", invite.code, guild_id)
        with get_session(engine) as session:
            _apply_invite(session, guild_id, invite)


def append_join(engine: Engine, entry: JoinEntry) -> None:
    """Insert one join row.  Never deduplicated."""
    with get_session(engine) as session:
        session.add(_join_row(entry))


def record_join(engine: Engine, entry: JoinEntry, invite: InviteInfo | None) -> int:
    """Upsert the matched invite and append the join in one transaction.

    Returns the inviter's distinct member count including this join
    (0 for the unknown inviter).
    """
    with get_session(engine) as session:
        if invite is not None:
            _apply_invite(session, entry.guild_id, invite)
        session.add(_join_row(entry))
        session.flush()
        return _count_invited(session, entry.guild_id, entry.inviter_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def latest_inviter_for(engine: Engine, guild_id: int, member_id: int) -> JoinView | None:
    """Most recent join row for the member, or None if never recorded."""
    with _reading(engine, "member inviter") as session:
        row = session.scalar(
            select(JoinRecord)
            .where(JoinRecord.guild_id == guild_id, JoinRecord.member_id == member_id)
            .order_by(JoinRecord.joined_at.desc(), JoinRecord.id.desc())
            .limit(1)
        )
        return _join_view(row) if row is not None else None


def count_invited_members(engine: Engine, guild_id: int, inviter_id: int) -> int:
    """Distinct members attributed to *inviter_id*."""
    with _reading(engine, "inviter count") as session:
        return _count_invited(session, guild_id, inviter_id)


def invited_members(engine: Engine, guild_id: int, inviter_id: int) -> list[JoinView]:
    """Members brought in by *inviter_id*, newest first, one entry per member."""
    with _reading(engine, "invited members") as session:
        rows = session.scalars(
            select(JoinRecord)
            .where(JoinRecord.guild_id == guild_id, JoinRecord.inviter_id == inviter_id)
            .order_by(JoinRecord.joined_at.desc(), JoinRecord.id.desc())
        ).all()
        seen: set[int] = set()
        views: list[JoinView] = []
        for row in rows:
            if row.member_id in seen:
                continue
            seen.add(row.member_id)
            views.append(_join_view(row))
        return views


def leaderboard(engine: Engine, guild_id: int, limit: int = 10) -> list[LeaderboardRow]:
    """Top inviters by distinct members, ties broken by inviter id."""
    if limit <= 0:
        return []
    with _reading(engine, "leaderboard") as session:
        return _leaderboard_rows(session, guild_id, limit)


def stats(
    engine: Engine,
    guild_id: int,
    window_days: int = DEFAULT_RECENT_WINDOW_DAYS,
    *,
    now: datetime | None = None,
) -> InviteStats:
    """Guild totals: all-time and recent distinct members, top inviter."""
    cutoff = (now or datetime.now(UTC)) - timedelta(days=window_days)
    with _reading(engine, "invite stats") as session:
        total = session.scalar(
            select(func.count(distinct(JoinRecord.member_id)))
            .where(JoinRecord.guild_id == guild_id)
        ) or 0
        recent = session.scalar(
            select(func.count(distinct(JoinRecord.member_id)))
            .where(JoinRecord.guild_id == guild_id, JoinRecord.joined_at >= cutoff)
        ) or 0
        top = _leaderboard_rows(session, guild_id, 1)
        return InviteStats(
            total_members=total,
            recent_members=recent,
            window_days=window_days,
            top_inviter=top[0] if top else None,
        )
