"""
invitetrail.api.routes.settings — Admin: per-guild tracking settings
=====================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from invitetrail.api.deps import AdminPayload, EngineDep
from invitetrail.constants import DEFAULT_WELCOME_TEMPLATE, TEMPLATE_MAX_LENGTH
from invitetrail.services import settings_service
from invitetrail.services.settings_service import InviteSettings

router = APIRouter(prefix="/admin/guilds/{guild_id}", tags=["admin"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class InviteSettingsUpdate(BaseModel):
    enabled: bool | None = None
    # Sent as a string; snowflakes don't survive JSON numbers in browsers
    log_channel_id: str | None = Field(default=None, pattern=r"^\d{1,20}$")
    template: str | None = Field(default=None, max_length=TEMPLATE_MAX_LENGTH)
    show_inviter: bool | None = None


def _settings_dict(settings: InviteSettings | None, guild_id: int) -> dict:
    if settings is None:
        return {
            "guild_id": str(guild_id),
            "configured": False,
            "enabled": False,
            "log_channel_id": None,
            "template": DEFAULT_WELCOME_TEMPLATE,
            "show_inviter": True,
        }
    return {
        "guild_id": str(settings.guild_id),
        "configured": True,
        "enabled": settings.enabled,
        "log_channel_id": str(settings.log_channel_id) if settings.log_channel_id else None,
        "template": settings.effective_template,
        "show_inviter": settings.show_inviter,
    }


# ---------------------------------------------------------------------------
# GET /admin/guilds/{guild_id}/settings
# ---------------------------------------------------------------------------
@router.get("/settings")
def get_settings(guild_id: int, admin: AdminPayload, engine: EngineDep):
    return _settings_dict(settings_service.get_invite_settings(engine, guild_id), guild_id)


# ---------------------------------------------------------------------------
# PUT /admin/guilds/{guild_id}/settings
# ---------------------------------------------------------------------------
@router.put("/settings")
def update_settings(
    guild_id: int,
    body: InviteSettingsUpdate,
    admin: AdminPayload,
    engine: EngineDep,
):
    """Partial update — only fields present in the body are written."""
    changes = body.model_dump(exclude_unset=True)
    if "log_channel_id" in changes and changes["log_channel_id"] is not None:
        changes["log_channel_id"] = int(changes["log_channel_id"])
    if "template" in changes:
        changes["template"] = changes["template"] or None
    if not changes:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "No settings to update")

    try:
        settings = settings_service.update_invite_settings(engine, guild_id, **changes)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    logger.info(
        "Admin %s updated invite settings for guild %d: %s",
        admin.get("sub"), guild_id, sorted(changes),
    )
    return _settings_dict(settings, guild_id)
