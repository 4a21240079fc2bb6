"""
invitetrail.config — YAML Configuration Loader
===============================================

Reads ``config.yaml`` for **infrastructure-only** settings (bot prefix,
API port, fetch timeout, announcement throttling).  Per-guild behaviour
(enabled flag, log channel, welcome template) lives in the
``invite_settings`` table and is edited through the admin API.

Usage::

    from invitetrail.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.fetch_timeout_seconds) # 10.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure only.
# Per-guild tracking settings live in the DB ``invite_settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class InviteTrailConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str

    # Dashboard API
    dashboard_port: int

    # Analytics
    leaderboard_size: int = 10
    recent_window_days: int = 7

    # Invite fetches slower than this count as failures
    fetch_timeout_seconds: float = 10.0

    # Join-notice throttle (per log channel)
    announce_max_per_window: int = 5
    announce_window_seconds: int = 60


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> InviteTrailConfig:
    """Read *path* and return an :class:`InviteTrailConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return InviteTrailConfig(
        bot_prefix=raw["bot_prefix"],
        dashboard_port=int(raw["dashboard_port"]),
        leaderboard_size=int(raw.get("leaderboard_size", 10)),
        recent_window_days=int(raw.get("recent_window_days", 7)),
        fetch_timeout_seconds=float(raw.get("fetch_timeout_seconds", 10.0)),
        announce_max_per_window=int(raw.get("announce_max_per_window", 5)),
        announce_window_seconds=int(raw.get("announce_window_seconds", 60)),
    )
