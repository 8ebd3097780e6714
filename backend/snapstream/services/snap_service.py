"""
SnapStream Backend — Snap Service (Content Store)
===================================================

What:  Write path for uploads and the two single-snap read paths.
How:   Composes FileService (validation + staging), the snaps table, and the
       Hashtag Index inside one database transaction.
Who:   Called by the /api/snaps route handlers.

Upload Transaction:
    ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌──────────┐   ┌────────┐
    │ Validate │──▶│  Stage   │──▶│ Owner     │──▶│ INSERT   │──▶│ Index  │──▶ COMMIT
    │ (no I/O) │   │ to disk  │   │ lookup    │   │ snap     │   │ tags   │
    └──────────┘   └──────────┘   └───────────┘   └──────────┘   └────────┘

    Validation failure  → ValidationError (400), nothing staged or written
    Owner missing       → NotFoundError (404), rolled back
    Any other failure   → rolled back in full; storage errors → DatabaseError (500)
    Always              → staged file discarded

Read Paths:
    get_snap_image() and get_snap() return None for ids that are unknown or
    already past expires_at, so a snap disappears from every read path the
    moment it expires even if the reaper has not run yet.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.config import settings
from snapstream.exceptions import DatabaseError, NotFoundError, SnapStreamError
from snapstream.models.snap import Snap, SnapHashtag
from snapstream.models.user import User
from snapstream.schemas.snap import SnapResponse, SnapUploadResponse
from snapstream.services import hashtag_index
from snapstream.services.file_service import file_service

logger = logging.getLogger(__name__)


def image_url_for(snap_id: uuid.UUID) -> str:
    return f"/api/snaps/image/{snap_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapService:
    """
    Business logic for creating and reading snaps.

    Stateless: every call receives the session it works in.
    """

    async def create_snap(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        content: bytes,
        content_type: Optional[str],
        caption: Optional[str] = None,
        location: Optional[str] = None,
        raw_hashtags: Optional[str] = None,
        content_length: Optional[int] = None,
    ) -> SnapUploadResponse:
        """
        Persist a new snap and its hashtags atomically.

        The transaction is committed here (not by the request dependency) so
        the caller can broadcast the new snap knowing it is durable.

        Args:
            db: Session for this request
            owner_id: Authenticated uploader
            content: Raw image bytes
            content_type: Declared mime type of the upload
            caption / location / raw_hashtags: Optional text fields
            content_length: Size reported by the client, if any

        Returns:
            SnapUploadResponse with the created snap and per-tag warnings

        Raises:
            ValidationError: Disallowed type, empty or oversized image
            NotFoundError: Owner does not exist or is inactive
            FileStorageError: Staging failed
            DatabaseError: Insert or commit failed
        """
        mime_type = file_service.validate_upload(content, content_type, content_length)

        staged_path: Optional[Path] = None
        try:
            staged_path = await file_service.stage(content, mime_type)

            owner = await db.get(User, owner_id)
            if owner is None or not owner.is_active:
                raise NotFoundError(resource="user", resource_id=str(owner_id))

            image_data = await file_service.read_staged(staged_path)

            created_at = utcnow()
            snap = Snap(
                id=uuid.uuid4(),
                user_id=owner.id,
                image_data=image_data,
                mime_type=mime_type,
                caption=caption or None,
                location=location or None,
                hashtags=raw_hashtags or None,
                created_at=created_at,
                expires_at=created_at + settings.snap_ttl,
            )
            db.add(snap)
            await db.flush()

            indexed = await hashtag_index.index_hashtags(db, snap.id, raw_hashtags)

            await db.commit()
            logger.info(
                "Snap %s created by %s (%d bytes, %s, %d tag warnings)",
                snap.id,
                owner.username,
                len(image_data),
                mime_type,
                len(indexed.warnings),
            )

            return SnapUploadResponse(
                snap=SnapResponse(
                    id=snap.id,
                    user_id=owner.id,
                    username=owner.username,
                    profile_picture_url=owner.profile_picture_url,
                    image_url=image_url_for(snap.id),
                    caption=snap.caption,
                    location=snap.location,
                    hashtags=snap.hashtags,
                    hashtag_list=sorted(indexed.indexed),
                    created_at=snap.created_at,
                    expires_at=snap.expires_at,
                    view_count=0,
                ),
                warnings=indexed.warnings,
            )

        except SnapStreamError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error creating snap for %s: %s", owner_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Failed to upload snap. Please try again.",
                context={"owner_id": str(owner_id), "error_type": type(e).__name__},
            )
        except Exception:
            await db.rollback()
            logger.error("Unexpected error creating snap for %s", owner_id, exc_info=True)
            raise
        finally:
            await file_service.discard(staged_path)

    async def get_snap_image(
        self, db: AsyncSession, snap_id: uuid.UUID
    ) -> Optional[Tuple[bytes, str]]:
        """
        Fetch the raw image of a live snap.

        Returns:
            (image bytes, mime type), or None if the snap is unknown or expired.
        """
        result = await db.execute(
            select(Snap.image_data, Snap.mime_type).where(
                Snap.id == snap_id,
                Snap.expires_at > utcnow(),
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row.image_data, row.mime_type

    async def get_snap(self, db: AsyncSession, snap_id: uuid.UUID) -> Optional[SnapResponse]:
        """
        Fetch a live snap joined with its owner and hashtags.

        Returns:
            SnapResponse, or None if the snap is unknown or expired.
        """
        result = await db.execute(
            select(
                Snap.id,
                Snap.user_id,
                Snap.caption,
                Snap.location,
                Snap.hashtags,
                Snap.created_at,
                Snap.expires_at,
                Snap.view_count,
                User.username,
                User.profile_picture_url,
            )
            .join(User, Snap.user_id == User.id)
            .where(Snap.id == snap_id, Snap.expires_at > utcnow())
        )
        row = result.one_or_none()
        if row is None:
            return None

        tag_result = await db.execute(
            select(SnapHashtag.hashtag)
            .where(SnapHashtag.snap_id == snap_id)
            .order_by(SnapHashtag.hashtag)
        )
        tags = hashtag_index.display_hashtags(list(tag_result.scalars().all()), row.hashtags)

        return SnapResponse(
            id=row.id,
            user_id=row.user_id,
            username=row.username,
            profile_picture_url=row.profile_picture_url,
            image_url=image_url_for(row.id),
            caption=row.caption,
            location=row.location,
            hashtags=row.hashtags,
            hashtag_list=tags,
            created_at=row.created_at,
            expires_at=row.expires_at,
            view_count=row.view_count,
        )


snap_service = SnapService()
