"""
invitetrail.database.models — SQLAlchemy 2.0 Data Models
=========================================================

Tables:
- invites          — Latest known metadata per invite code (upserted)
- invite_joins     — Append-only join attribution journal
- invite_settings  — Per-guild tracking settings
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all InviteTrail ORM models."""


# ---------------------------------------------------------------------------
# Invites — one row per (guild, code)
# ---------------------------------------------------------------------------
class InviteRecord(Base):
    """Latest known state of an invite link.

    ``inviter_tag`` is copied at insert time and never rewritten, so the
    row keeps the name the inviter had when the link was first seen.
    """
    __tablename__ = "invites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    inviter_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    inviter_tag: Mapped[str | None] = mapped_column(String(100), default=None)
    uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_uses: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        UniqueConstraint("guild_id", "code", name="uq_invites_guild_code"),
        Index("ix_invites_guild_inviter", "guild_id", "inviter_id"),
    )

    def __repr__(self) -> str:
        return f"<InviteRecord guild={self.guild_id} code={self.code!r} uses={self.uses}>"


# ---------------------------------------------------------------------------
# InviteJoins — append-only attribution journal
# ---------------------------------------------------------------------------
class JoinRecord(Base):
    """One row per attributed member join.

    Rejoins produce new rows; aggregates count distinct ``member_id``.
    ``code`` is NULL when the inviter could not be determined.
    """
    __tablename__ = "invite_joins"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    member_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    member_tag: Mapped[str | None] = mapped_column(String(100), default=None)
    code: Mapped[str | None] = mapped_column(String(32), default=None)
    inviter_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    inviter_tag: Mapped[str | None] = mapped_column(String(100), default=None)
    confidence: Mapped[str] = mapped_column(String(16), nullable=False, default="resolved")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_invite_joins_guild_member", "guild_id", "member_id", "joined_at"),
        Index("ix_invite_joins_guild_inviter", "guild_id", "inviter_id"),
        Index("ix_invite_joins_guild_joined", "guild_id", "joined_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<JoinRecord guild={self.guild_id} member={self.member_id} "
            f"inviter={self.inviter_id} code={self.code!r}>"
        )


# ---------------------------------------------------------------------------
# InviteSettings — per-guild configuration
# ---------------------------------------------------------------------------
class InviteSettingsRow(Base):
    """Per-guild tracking settings.  Written by the admin API only."""
    __tablename__ = "invite_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    log_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    template: Mapped[str | None] = mapped_column(Text, default=None)
    show_inviter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<InviteSettingsRow guild={self.guild_id} enabled={self.enabled}>"
