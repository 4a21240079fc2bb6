"""
invitetrail.api.routes.invites — Read-only invite analytics
============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from invitetrail.api.deps import EngineDep
from invitetrail.services import invite_service
from invitetrail.services.invite_service import (
    InviteDataUnavailable,
    JoinView,
    LeaderboardRow,
)

router = APIRouter(prefix="/guilds/{guild_id}", tags=["invites"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _unavailable(exc: InviteDataUnavailable) -> HTTPException:
    return HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))


def _row_dict(row: LeaderboardRow) -> dict:
    # Snowflakes as strings: JS clients lose precision above 2**53
    return {
        "inviter_id": str(row.inviter_id),
        "inviter_tag": row.inviter_tag,
        "member_count": row.member_count,
    }


def _join_dict(view: JoinView) -> dict:
    return {
        "member_id": str(view.member_id),
        "member_tag": view.member_tag,
        "inviter_id": str(view.inviter_id),
        "inviter_tag": view.inviter_tag,
        "code": view.code,
        "confidence": view.confidence,
        "joined_at": view.joined_at.isoformat() if view.joined_at else None,
    }


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/invites/leaderboard
# ---------------------------------------------------------------------------
@router.get("/invites/leaderboard")
def get_leaderboard(
    guild_id: int,
    engine: EngineDep,
    limit: int = Query(10, ge=1, le=100),
):
    """Top inviters by distinct members brought in."""
    try:
        rows = invite_service.leaderboard(engine, guild_id, limit)
    except InviteDataUnavailable as exc:
        raise _unavailable(exc)
    return {"guild_id": str(guild_id), "leaderboard": [_row_dict(r) for r in rows]}


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/invites/stats
# ---------------------------------------------------------------------------
@router.get("/invites/stats")
def get_stats(
    guild_id: int,
    engine: EngineDep,
    window_days: int = Query(invite_service.DEFAULT_RECENT_WINDOW_DAYS, ge=1, le=365),
):
    try:
        s = invite_service.stats(engine, guild_id, window_days)
    except InviteDataUnavailable as exc:
        raise _unavailable(exc)
    return {
        "guild_id": str(guild_id),
        "total_members": s.total_members,
        "recent_members": s.recent_members,
        "window_days": s.window_days,
        "top_inviter": _row_dict(s.top_inviter) if s.top_inviter else None,
    }


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/members/{member_id}/inviter
# ---------------------------------------------------------------------------
@router.get("/members/{member_id}/inviter")
def get_member_inviter(guild_id: int, member_id: int, engine: EngineDep):
    """The member's latest recorded join.  404 if they were never tracked."""
    try:
        view = invite_service.latest_inviter_for(engine, guild_id, member_id)
    except InviteDataUnavailable as exc:
        raise _unavailable(exc)
    if view is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No invite information for member")
    return _join_dict(view)


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/inviters/{inviter_id}/members
# ---------------------------------------------------------------------------
@router.get("/inviters/{inviter_id}/members")
def get_invited_members(guild_id: int, inviter_id: int, engine: EngineDep):
    try:
        views = invite_service.invited_members(engine, guild_id, inviter_id)
    except InviteDataUnavailable as exc:
        raise _unavailable(exc)
    return {
        "inviter_id": str(inviter_id),
        "count": len(views),
        "members": [_join_dict(v) for v in views],
    }
