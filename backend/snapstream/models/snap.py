"""
SnapStream Backend — Snap & Hashtag SQLAlchemy Models
=======================================================

What:  ORM models for the `snaps` table (Content Store) and the
       `snap_hashtags` association table (Hashtag Index).
How:   Image bytes live in the row itself (LargeBinary) next to their mime
       type. Both foreign keys cascade on delete at the database level, so
       deleting a user removes their snaps and deleting a snap removes its
       hashtag rows without any application-side loop.

Lifecycle of a snap:
    1. Inserted on upload with created_at = now and expires_at = now + TTL,
       both computed by SnapService (never by the client)
    2. Read-only while live; read paths filter on expires_at > now
    3. Hard-deleted by the ExpiryReaper once created_at < now - TTL

Query Patterns:
    - Feed page:  WHERE expires_at > :now ORDER BY created_at DESC, id DESC
                  LIMIT :limit OFFSET :offset  → idx_snaps_feed_order
    - Reaper:     DELETE WHERE created_at < :cutoff RETURNING id
    - Read paths: WHERE id = :id AND expires_at > :now → primary key
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from snapstream.database import Base

# Tags longer than this are rejected per tag by the Hashtag Index
MAX_HASHTAG_LENGTH = 100


class Snap(Base):
    """
    An ephemeral image post.

    Invariant:
        expires_at - created_at == settings.snap_ttl, exactly.
    """

    __tablename__ = "snaps"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # ── Image Payload ─────────────────────────────────────────────────────
    image_data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # ── Metadata ──────────────────────────────────────────────────────────
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Raw hashtag string exactly as submitted; snap_hashtags holds the parsed form
    hashtags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Lifecycle ─────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    __table_args__ = (
        Index("idx_snaps_expires_at", "expires_at"),
        Index("idx_snaps_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Snap(id={self.id}, user_id={self.user_id}, "
            f"created_at='{self.created_at}', expires_at='{self.expires_at}')>"
        )


# Feed order index: newest first, id as the tie-break
Index("idx_snaps_feed_order", Snap.created_at.desc(), Snap.id.desc())


class SnapHashtag(Base):
    """One (snap, tag) pair. The composite primary key makes each pair unique."""

    __tablename__ = "snap_hashtags"

    snap_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("snaps.id", ondelete="CASCADE"),
        primary_key=True,
    )
    hashtag: Mapped[str] = mapped_column(String(MAX_HASHTAG_LENGTH), primary_key=True)

    __table_args__ = (
        Index("idx_snap_hashtags_hashtag", "hashtag"),
    )

    def __repr__(self) -> str:
        return f"<SnapHashtag(snap_id={self.snap_id}, hashtag='{self.hashtag}')>"
