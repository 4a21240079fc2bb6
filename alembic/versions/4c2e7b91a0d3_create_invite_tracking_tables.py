"""Create invites, invite_joins and invite_settings tables

Revision ID: 4c2e7b91a0d3
Revises:
Create Date: 2026-10-17 18:40:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c2e7b91a0d3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "invites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("inviter_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("inviter_tag", sa.String(100), nullable=True),
        sa.Column("uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("guild_id", "code", name="uq_invites_guild_code"),
    )
    op.create_index("ix_invites_guild_inviter", "invites", ["guild_id", "inviter_id"])

    op.create_table(
        "invite_joins",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("member_id", sa.BigInteger(), nullable=False),
        sa.Column("member_tag", sa.String(100), nullable=True),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("inviter_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("inviter_tag", sa.String(100), nullable=True),
        sa.Column("confidence", sa.String(16), nullable=False, server_default="resolved"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_invite_joins_guild_member", "invite_joins", ["guild_id", "member_id", "joined_at"]
    )
    op.create_index("ix_invite_joins_guild_inviter", "invite_joins", ["guild_id", "inviter_id"])
    op.create_index("ix_invite_joins_guild_joined", "invite_joins", ["guild_id", "joined_at"])

    op.create_table(
        "invite_settings",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("log_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("template", sa.Text(), nullable=True),
        sa.Column("show_inviter", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("invite_settings")
    op.drop_index("ix_invite_joins_guild_joined", table_name="invite_joins")
    op.drop_index("ix_invite_joins_guild_inviter", table_name="invite_joins")
    op.drop_index("ix_invite_joins_guild_member", table_name="invite_joins")
    op.drop_table("invite_joins")
    op.drop_index("ix_invites_guild_inviter", table_name="invites")
    op.drop_table("invites")
