"""
SnapStream Backend — Feed Route
=================================

What:  GET /api/feed?page=&limit=
How:   Out-of-range page/limit values are clamped by FeedService rather
       than rejected; non-integer values fail request validation.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.config import settings
from snapstream.database import get_db_session
from snapstream.schemas.snap import ErrorResponse, FeedResponse
from snapstream.services.feed_service import feed_service

router = APIRouter(prefix="/api", tags=["Feed"])


@router.get(
    "/feed",
    response_model=FeedResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Newest-first feed of live snaps",
)
async def get_feed(
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(
        default=settings.feed_default_limit,
        description=f"Items per page (max {settings.feed_max_limit})",
    ),
    db: AsyncSession = Depends(get_db_session),
) -> FeedResponse:
    return await feed_service.get_feed(db, page=page, page_size=limit)
