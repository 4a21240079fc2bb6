"""
invitetrail.services.settings_service — Per-Guild Tracking Settings
====================================================================

Typed read/write access to the ``invite_settings`` table.  The bot only
reads (before doing any attribution work); writes come from the admin
API.

A guild without a row has not been set up and is treated as disabled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine

from invitetrail.constants import DEFAULT_WELCOME_TEMPLATE, TEMPLATE_MAX_LENGTH
from invitetrail.database.engine import get_session
from invitetrail.database.models import InviteSettingsRow

logger = logging.getLogger(__name__)

# Columns the writers are allowed to touch
ALLOWED_SETTING_FIELDS: frozenset[str] = frozenset({
    "enabled", "log_channel_id", "template", "show_inviter",
})


@dataclass(frozen=True, slots=True)
class InviteSettings:
    """Detached, read-only view of a guild's settings row."""

    guild_id: int
    enabled: bool
    log_channel_id: int | None
    template: str | None
    show_inviter: bool

    @property
    def effective_template(self) -> str:
        return self.template or DEFAULT_WELCOME_TEMPLATE


def _to_view(row: InviteSettingsRow) -> InviteSettings:
    return InviteSettings(
        guild_id=row.guild_id,
        enabled=bool(row.enabled),
        log_channel_id=row.log_channel_id,
        template=row.template,
        show_inviter=bool(row.show_inviter),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_invite_settings(engine: Engine, guild_id: int) -> InviteSettings | None:
    """Settings for *guild_id*, or None if the guild was never set up."""
    with get_session(engine) as session:
        row = session.get(InviteSettingsRow, guild_id)
        return _to_view(row) if row is not None else None


def is_tracking_enabled(engine: Engine, guild_id: int) -> bool:
    settings = get_invite_settings(engine, guild_id)
    return settings is not None and settings.enabled


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def update_invite_settings(engine: Engine, guild_id: int, **changes: Any) -> InviteSettings:
    """Apply *changes* to the guild's row, creating it on first write.

    Raises
    ------
    ValueError
        On an unknown field or a template over the length limit.
    """
    unknown = set(changes) - ALLOWED_SETTING_FIELDS
    if unknown:
        raise ValueError(f"Unknown invite setting(s): {', '.join(sorted(unknown))}")

    template = changes.get("template")
    if template is not None and len(template) > TEMPLATE_MAX_LENGTH:
        raise ValueError(f"Template exceeds {TEMPLATE_MAX_LENGTH} characters")

    with get_session(engine) as session:
        row = session.get(InviteSettingsRow, guild_id)
        if row is None:
            row = InviteSettingsRow(guild_id=guild_id, enabled=True, show_inviter=True)
            session.add(row)
        for field_name, value in changes.items():
            setattr(row, field_name, value)
        session.flush()
        view = _to_view(row)

    logger.info("Invite settings updated for guild %d: %s", guild_id, sorted(changes))
    return view


def set_enabled(engine: Engine, guild_id: int, enabled: bool) -> InviteSettings:
    return update_invite_settings(engine, guild_id, enabled=enabled)


def set_log_destination(engine: Engine, guild_id: int, channel_id: int | None) -> InviteSettings:
    return update_invite_settings(engine, guild_id, log_channel_id=channel_id)


def set_template(engine: Engine, guild_id: int, template: str | None) -> InviteSettings:
    """Set the welcome template; ``None`` restores the default."""
    return update_invite_settings(engine, guild_id, template=template or None)


def set_show_inviter(engine: Engine, guild_id: int, show: bool) -> InviteSettings:
    return update_invite_settings(engine, guild_id, show_inviter=show)
