"""
invitetrail.constants — Shared Constants
=========================================

Single source of truth for the unknown-inviter sentinel, the default
welcome template, and presentation constants.  Import from here instead
of duplicating in cogs, services, and the API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Unknown-inviter sentinel
# ---------------------------------------------------------------------------
UNKNOWN_INVITER_ID: int = 0
UNKNOWN_INVITER_TAG: str = "Unknown"

# ---------------------------------------------------------------------------
# Welcome template
# ---------------------------------------------------------------------------
# Placeholders: {user} {server} {inviter} {invites} {invite-code} {invite-url}
DEFAULT_WELCOME_TEMPLATE: str = (
    "\U0001f44b Welcome {user} to {server}!\n\n"
    "\U0001f3af You were invited by **{inviter}**\n"
    "\U0001f4ab They have invited **{invites}** members"
)

TEMPLATE_MAX_LENGTH: int = 2000

INVITE_URL_BASE: str = "https://discord.gg/"

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

COLOR_JOIN: int = 0x43B581
COLOR_LEAVE: int = 0xF04747
COLOR_INFO: int = 0x5865F2


def invite_url(code: str | None) -> str:
    """Public URL for an invite *code* (empty string for no code)."""
    return f"{INVITE_URL_BASE}{code}" if code else ""
