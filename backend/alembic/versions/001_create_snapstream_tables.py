"""Create users, snaps and snap_hashtags tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Initial SnapStream schema.
How:   PostgreSQL UUID keys with gen_random_uuid() defaults, timestamptz
       columns, and ON DELETE CASCADE from users → snaps → snap_hashtags so
       deleting a snap (the expiry reaper) removes its hashtag rows.

Rollback: downgrade() drops all three tables.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("profile_picture_url", sa.String(512), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("last_login", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "snaps",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("image_data", sa.LargeBinary(), nullable=False),
        sa.Column("mime_type", sa.String(50), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("hashtags", sa.Text(), nullable=True, comment="Raw hashtag string as uploaded"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_snaps_expires_at", "snaps", ["expires_at"])
    op.create_index("idx_snaps_user_id", "snaps", ["user_id"])
    # Matches the feed's ORDER BY created_at DESC, id DESC
    op.create_index(
        "idx_snaps_feed_order",
        "snaps",
        [sa.text("created_at DESC"), sa.text("id DESC")],
    )

    op.create_table(
        "snap_hashtags",
        sa.Column("snap_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("hashtag", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("snap_id", "hashtag"),
        sa.ForeignKeyConstraint(["snap_id"], ["snaps.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_snap_hashtags_hashtag", "snap_hashtags", ["hashtag"])


def downgrade() -> None:
    op.drop_index("idx_snap_hashtags_hashtag", table_name="snap_hashtags")
    op.drop_table("snap_hashtags")
    op.drop_index("idx_snaps_feed_order", table_name="snaps")
    op.drop_index("idx_snaps_user_id", table_name="snaps")
    op.drop_index("idx_snaps_expires_at", table_name="snaps")
    op.drop_table("snaps")
    op.drop_table("users")
