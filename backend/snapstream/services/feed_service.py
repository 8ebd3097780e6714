"""
SnapStream Backend — Feed Assembler
=====================================

What:  Paginated, newest-first listing of live public snaps.
How:   Three queries per request:
         1. Page window: snaps ⨝ users, columns only (no image blobs),
            ORDER BY created_at DESC, id DESC, LIMIT/OFFSET
         2. Tags: snap_hashtags rows for the ids on the page, grouped in Python
         3. Count: COUNT(*) over the same filter for the pagination summary
Who:   GET /api/feed.

Ordering:
    `id` breaks ties between snaps with the same created_at, so the order is
    total and pages never overlap or skip rows under a stable corpus.

Consistency:
    The window and the count are separate statements. Under concurrent
    uploads or reaper passes total_items may be off by a few; callers treat
    it as a hint.
"""

import logging
import math
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.config import settings
from snapstream.exceptions import DatabaseError
from snapstream.models.snap import Snap, SnapHashtag
from snapstream.models.user import User
from snapstream.schemas.snap import FeedResponse, Pagination, SnapResponse
from snapstream.services.hashtag_index import display_hashtags
from snapstream.services.snap_service import image_url_for, utcnow

logger = logging.getLogger(__name__)


def clamp_page(page: int) -> int:
    return max(1, page)


def clamp_limit(limit: int) -> int:
    return min(max(1, limit), settings.feed_max_limit)


class FeedService:
    """Read-only assembly of feed pages."""

    async def get_feed(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 10,
    ) -> FeedResponse:
        """
        Return one page of the feed.

        Args:
            db: Session for this request
            page: 1-based page number; values below 1 are treated as 1
            page_size: Items per page, clamped to [1, feed_max_limit]

        Returns:
            FeedResponse with the page items and a pagination summary.
            A page past the end yields an empty list, not an error.

        Raises:
            DatabaseError: Any query failed
        """
        page = clamp_page(page)
        page_size = clamp_limit(page_size)
        now = utcnow()
        live = (Snap.expires_at > now, Snap.is_public.is_(True))

        try:
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
                .where(*live)
                .order_by(Snap.created_at.desc(), Snap.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
            rows = result.all()

            tags_by_snap: Dict = defaultdict(list)
            if rows:
                tag_result = await db.execute(
                    select(SnapHashtag.snap_id, SnapHashtag.hashtag)
                    .where(SnapHashtag.snap_id.in_([row.id for row in rows]))
                    .order_by(SnapHashtag.snap_id, SnapHashtag.hashtag)
                )
                for snap_id, hashtag in tag_result.all():
                    tags_by_snap[snap_id].append(hashtag)

            count_result = await db.execute(select(func.count(Snap.id)).where(*live))
            total_items = count_result.scalar() or 0

        except SQLAlchemyError as e:
            logger.error("Database error assembling feed page %d: %s", page, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load the feed. Please try again.",
                context={"page": page, "limit": page_size, "error_type": type(e).__name__},
            )

        snaps: List[SnapResponse] = [
            SnapResponse(
                id=row.id,
                user_id=row.user_id,
                username=row.username,
                profile_picture_url=row.profile_picture_url,
                image_url=image_url_for(row.id),
                caption=row.caption,
                location=row.location,
                hashtags=row.hashtags,
                hashtag_list=display_hashtags(tags_by_snap.get(row.id), row.hashtags),
                created_at=row.created_at,
                expires_at=row.expires_at,
                view_count=row.view_count,
            )
            for row in rows
        ]

        return FeedResponse(
            snaps=snaps,
            pagination=Pagination(
                page=page,
                limit=page_size,
                total_items=total_items,
                total_pages=math.ceil(total_items / page_size),
            ),
        )


feed_service = FeedService()
