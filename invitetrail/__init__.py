"""
InviteTrail — Invite Attribution & Analytics for Discord
=========================================================
Attributes each member join to the invite link that brought them in,
persists the attribution stream, and serves leaderboards and recency
stats over it.

Package layout::

    invitetrail/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Sentinels, default template, rank badges
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # invites, invite_joins, invite_settings
    ├── engine/
    │   ├── events.py      # InviteInfo, JoinAttribution, Confidence …
    │   ├── snapshot.py    # Per-guild invite-usage snapshot store
    │   └── resolver.py    # Pure old-vs-fresh snapshot diff
    ├── services/
    │   ├── attribution_service.py  # Per-guild serialized event coordinator
    │   ├── invite_service.py       # Invite/join persistence + aggregates
    │   ├── settings_service.py     # Per-guild tracking settings
    │   ├── announcement_service.py # Join/leave notices to the log channel
    │   ├── embeds.py               # Embed builders + template rendering
    │   └── throttle.py             # Per-channel notice throttle
    ├── bot/
    │   ├── core.py          # Bot subclass, cog loader, snapshot warm-up
    │   ├── invite_source.py # discord.py → InviteInfo adapter
    │   └── cogs/
    │       ├── tracking.py  # Gateway listeners → coordinator
    │       └── invites.py   # Read-only leaderboard/stats commands
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine + admin JWT dependencies
        └── routes/        # Public analytics + admin settings
"""

__version__ = "0.1.0"
