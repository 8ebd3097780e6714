"""
SnapStream Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract for snaps, the feed, errors
       and health.
How:   FastAPI validates and serializes responses through these models and
       generates the OpenAPI document from them.

Schemas are separate from the SQLAlchemy models: the image blob and the
password hash never leave the service layer.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Snap Models
# ══════════════════════════════════════════════════════════════════════════


class SnapResponse(BaseModel):
    """
    What:  Denormalized snap as shown in the feed and on the detail page.
    Who:   GET /api/snaps/{id}, GET /api/feed items, POST /api/snaps,
           and the `new_snap` live event.
    """
    id: uuid.UUID = Field(description="Unique snap identifier (UUID)")
    user_id: uuid.UUID = Field(description="Owner's user id")
    username: str = Field(description="Owner's username")
    profile_picture_url: Optional[str] = Field(default=None, description="Owner's avatar URL")
    image_url: str = Field(description="URL path serving the raw image bytes")
    caption: Optional[str] = Field(default=None)
    location: Optional[str] = Field(default=None)
    hashtags: Optional[str] = Field(default=None, description="Raw hashtag string as uploaded")
    hashtag_list: List[str] = Field(default_factory=list, description="Parsed hashtags")
    created_at: datetime = Field(description="Creation time (UTC)")
    expires_at: datetime = Field(description="Expiry time: created_at + 12 hours")
    view_count: int = Field(default=0)

    model_config = {"from_attributes": True}


class SnapUploadResponse(BaseModel):
    """
    What:  Body of a successful upload (HTTP 201).

    warnings:
        Hashtags that were skipped by the lenient per-tag policy, e.g.
        "Skipped hashtag '#' (empty tag)". The upload itself succeeded.
    """
    message: str = Field(default="Snap uploaded successfully")
    snap: SnapResponse
    warnings: List[str] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Feed Models
# ══════════════════════════════════════════════════════════════════════════


class Pagination(BaseModel):
    """
    Pagination summary for the whole non-expired corpus.

    total_items/total_pages come from a separate COUNT query and may be
    slightly stale relative to the page contents under concurrent writes.
    """
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_items: int = Field(ge=0)
    total_pages: int = Field(ge=0)


class FeedResponse(BaseModel):
    snaps: List[SnapResponse]
    pagination: Pagination


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "snap with ID '...' was not found",
            "request_id": "1a2b3c4d"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    reaper: str = Field(description="Expiry reaper: running, stopped")
    last_reap_at: Optional[datetime] = Field(default=None, description="End of the last reaper pass")
    last_reap_deleted: Optional[int] = Field(default=None, description="Snaps deleted by the last pass")
    uptime_seconds: float = Field(description="Seconds since service started")
