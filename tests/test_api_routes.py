"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

These tests verify:
- Auth guards on the admin settings endpoints
- Response structure of the public analytics endpoints
- 404 / 503 mapping for missing and unavailable data
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest

from invitetrail.api.deps import JWT_ALGORITHM, JWT_SECRET
from invitetrail.engine.events import Confidence
from invitetrail.services import invite_service
from invitetrail.services.invite_service import InviteDataUnavailable, JoinEntry, append_join
from invitetrail.services.settings_service import get_invite_settings

GUILD = 4242


@pytest.fixture
def non_admin_token():
    return jwt.encode(
        {"sub": "67890", "username": "RegularUser", "is_admin": False},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _seed(engine, member_id: int, inviter_id: int, *, days_ago: int = 0, code: str = "abc"):
    append_join(engine, JoinEntry(
        guild_id=GUILD,
        member_id=member_id,
        member_tag=f"m{member_id}",
        code=code,
        inviter_id=inviter_id,
        inviter_tag=f"inviter{inviter_id}",
        confidence=Confidence.RESOLVED,
        joined_at=datetime.now(UTC) - timedelta(days=days_ago),
    ))


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "database": "ok"}

    def test_health_reports_unreachable_database(self, client):
        with patch("invitetrail.api.main.database_available", return_value=False):
            resp = client.get("/api/health")
        assert resp.status_code == 503
        assert resp.json() == {"status": "degraded", "database": "unavailable"}


# ===========================================================================
# Public analytics
# ===========================================================================
class TestLeaderboard:
    def test_empty(self, client):
        resp = client.get(f"/api/guilds/{GUILD}/invites/leaderboard")
        assert resp.status_code == 200
        assert resp.json() == {"guild_id": str(GUILD), "leaderboard": []}

    def test_distinct_counts_and_string_ids(self, client, db_engine):
        _seed(db_engine, 1, 10)
        _seed(db_engine, 1, 10)
        _seed(db_engine, 2, 20)
        _seed(db_engine, 3, 20)
        body = client.get(f"/api/guilds/{GUILD}/invites/leaderboard").json()
        assert body["leaderboard"] == [
            {"inviter_id": "20", "inviter_tag": "inviter20", "member_count": 2},
            {"inviter_id": "10", "inviter_tag": "inviter10", "member_count": 1},
        ]

    def test_limit(self, client, db_engine):
        for i in range(1, 4):
            _seed(db_engine, i, i * 10)
        body = client.get(f"/api/guilds/{GUILD}/invites/leaderboard?limit=2").json()
        assert len(body["leaderboard"]) == 2

    def test_invalid_limit(self, client):
        assert client.get(f"/api/guilds/{GUILD}/invites/leaderboard?limit=0").status_code == 422

    def test_unavailable_maps_to_503(self, client):
        with patch.object(
            invite_service, "leaderboard", side_effect=InviteDataUnavailable("leaderboard is unavailable"),
        ):
            resp = client.get(f"/api/guilds/{GUILD}/invites/leaderboard")
        assert resp.status_code == 503


class TestStats:
    def test_stats(self, client, db_engine):
        _seed(db_engine, 1, 10, days_ago=30)
        _seed(db_engine, 2, 10)
        body = client.get(f"/api/guilds/{GUILD}/invites/stats?window_days=7").json()
        assert body["total_members"] == 2
        assert body["recent_members"] == 1
        assert body["window_days"] == 7
        assert body["top_inviter"]["inviter_id"] == "10"

    def test_empty(self, client):
        body = client.get(f"/api/guilds/{GUILD}/invites/stats").json()
        assert body["total_members"] == 0
        assert body["top_inviter"] is None


class TestMemberInviter:
    def test_found(self, client, db_engine):
        _seed(db_engine, 7, 10, code="xyz")
        body = client.get(f"/api/guilds/{GUILD}/members/7/inviter").json()
        assert body["inviter_id"] == "10"
        assert body["code"] == "xyz"
        assert body["confidence"] == "resolved"

    def test_not_found(self, client):
        assert client.get(f"/api/guilds/{GUILD}/members/7/inviter").status_code == 404

    def test_invited_members(self, client, db_engine):
        _seed(db_engine, 1, 10)
        _seed(db_engine, 2, 10)
        body = client.get(f"/api/guilds/{GUILD}/inviters/10/members").json()
        assert body["count"] == 2
        assert {m["member_id"] for m in body["members"]} == {"1", "2"}


# ===========================================================================
# Admin settings
# ===========================================================================
class TestAdminAuth:
    def test_rejects_no_auth(self, client):
        assert client.get(f"/api/admin/guilds/{GUILD}/settings").status_code == 401

    def test_rejects_invalid_token(self, client):
        resp = client.get(f"/api/admin/guilds/{GUILD}/settings", headers=_auth("garbage"))
        assert resp.status_code == 401

    def test_rejects_non_admin(self, client, non_admin_token):
        resp = client.put(
            f"/api/admin/guilds/{GUILD}/settings",
            json={"enabled": True},
            headers=_auth(non_admin_token),
        )
        assert resp.status_code == 403


class TestAdminSettings:
    def test_unconfigured_guild(self, client, admin_token):
        body = client.get(f"/api/admin/guilds/{GUILD}/settings", headers=_auth(admin_token)).json()
        assert body["configured"] is False
        assert body["enabled"] is False

    def test_partial_update(self, client, admin_token, db_engine):
        resp = client.put(
            f"/api/admin/guilds/{GUILD}/settings",
            json={"log_channel_id": "123456789012345678"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["configured"] is True
        assert body["enabled"] is True
        assert body["log_channel_id"] == "123456789012345678"

        client.put(
            f"/api/admin/guilds/{GUILD}/settings",
            json={"show_inviter": False, "template": "Hi {user}"},
            headers=_auth(admin_token),
        )
        settings = get_invite_settings(db_engine, GUILD)
        assert settings.log_channel_id == 123456789012345678
        assert settings.show_inviter is False
        assert settings.template == "Hi {user}"

    def test_clear_log_channel(self, client, admin_token, db_engine):
        headers = _auth(admin_token)
        client.put(f"/api/admin/guilds/{GUILD}/settings", json={"log_channel_id": "5"}, headers=headers)
        body = client.put(
            f"/api/admin/guilds/{GUILD}/settings", json={"log_channel_id": None}, headers=headers,
        ).json()
        assert body["log_channel_id"] is None

    def test_empty_body_rejected(self, client, admin_token):
        resp = client.put(f"/api/admin/guilds/{GUILD}/settings", json={}, headers=_auth(admin_token))
        assert resp.status_code == 422

    def test_bad_channel_id(self, client, admin_token):
        resp = client.put(
            f"/api/admin/guilds/{GUILD}/settings",
            json={"log_channel_id": "not-a-number"},
            headers=_auth(admin_token),
        )
        assert resp.status_code == 422
