"""
SnapStream Backend — Snap Route Handlers
==========================================

What:  POST /api/snaps (upload), GET /api/snaps/image/{id} (raw bytes) and
       GET /api/snaps/{id} (detail).
How:   Thin handlers over SnapService. Absent snaps come back from the
       service as None and are turned into 404 here.
Who:   The upload form, <img> tags in the feed, and the detail view.

Caching:
    Image bytes never change for a given id, so the image endpoint is
    served as immutable for a year. Once the snap expires the id 404s.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.database import get_db_session
from snapstream.dependencies import get_broadcaster, get_current_user_claims
from snapstream.exceptions import NotFoundError, ValidationError
from snapstream.schemas.snap import ErrorResponse, SnapResponse, SnapUploadResponse
from snapstream.services.broadcaster import SnapBroadcaster
from snapstream.services.snap_service import snap_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snaps", tags=["Snaps"])

IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"


@router.post(
    "",
    status_code=201,
    response_model=SnapUploadResponse,
    responses={
        400: {"description": "Invalid image or fields", "model": ErrorResponse},
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        404: {"description": "Uploading user no longer exists", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Upload a snap",
    description=(
        "Upload an image (JPEG, PNG, GIF or WEBP, max 10MB) with an optional "
        "caption, location and hashtags. The snap is visible for 12 hours."
    ),
)
async def upload_snap(
    background_tasks: BackgroundTasks,
    image: Optional[UploadFile] = File(default=None, description="Image file"),
    caption: Optional[str] = Form(default=None),
    location: Optional[str] = Form(default=None, max_length=255),
    hashtags: Optional[str] = Form(default=None, description="e.g. '#sunset, #beach'"),
    claims: Dict[str, Any] = Depends(get_current_user_claims),
    broadcaster: SnapBroadcaster = Depends(get_broadcaster),
    db: AsyncSession = Depends(get_db_session),
) -> SnapUploadResponse:
    """
    Create a snap for the authenticated user.

    The service commits before returning, so the `new_snap` broadcast
    scheduled here always describes a durable snap.
    """
    if image is None:
        raise ValidationError(message="Image file is required", field="image")

    try:
        content = await image.read()
        logger.info(
            "Received snap upload from %s: filename=%s, size=%d bytes",
            claims["username"],
            image.filename or "unknown",
            len(content),
        )
        result = await snap_service.create_snap(
            db=db,
            owner_id=claims["id"],
            content=content,
            content_type=image.content_type,
            caption=caption,
            location=location,
            raw_hashtags=hashtags,
            content_length=image.size,
        )
    finally:
        await image.close()

    background_tasks.add_task(broadcaster.publish_snap, result.snap.model_dump(mode="json"))
    return result


@router.get(
    "/image/{snap_id}",
    responses={
        200: {"description": "Raw image bytes", "content": {"image/*": {}}},
        404: {"description": "Unknown or expired snap", "model": ErrorResponse},
    },
    summary="Serve a snap's image",
)
async def get_snap_image(
    snap_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    image = await snap_service.get_snap_image(db, snap_id)
    if image is None:
        raise NotFoundError(resource="snap", resource_id=str(snap_id))

    data, mime_type = image
    return Response(
        content=data,
        media_type=mime_type,
        headers={"Cache-Control": IMAGE_CACHE_CONTROL},
    )


@router.get(
    "/{snap_id}",
    response_model=SnapResponse,
    responses={404: {"description": "Unknown or expired snap", "model": ErrorResponse}},
    summary="Get a single snap",
)
async def get_snap(
    snap_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SnapResponse:
    snap = await snap_service.get_snap(db, snap_id)
    if snap is None:
        raise NotFoundError(resource="snap", resource_id=str(snap_id))
    return snap
