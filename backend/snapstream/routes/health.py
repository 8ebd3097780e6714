"""
SnapStream Backend — Health Check Route
=========================================

What:  GET /health for container probes and load balancers.
How:   Pings the database and reads the expiry reaper's last-run state.

Status levels:
    healthy:    database reachable, reaper running and its last pass succeeded
    degraded:   database reachable but the reaper is stopped or its last pass
                failed (expired snaps stay hidden but are not reclaimed)
    unhealthy:  database unreachable (HTTP 503)
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from snapstream import __version__
from snapstream.database import get_database
from snapstream.schemas.snap import HealthResponse
from snapstream.services.reaper import ExpiryReaper

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request):
    database = get_database(request)
    reaper: Optional[ExpiryReaper] = getattr(request.app.state, "reaper", None)

    db_ok = await database.ping()
    reaper_running = reaper is not None and reaper.is_running

    if not db_ok:
        overall = "unhealthy"
    elif not reaper_running or (reaper is not None and reaper.last_error):
        overall = "degraded"
    else:
        overall = "healthy"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database="connected" if db_ok else "disconnected",
        reaper="running" if reaper_running else "stopped",
        last_reap_at=reaper.last_run_at if reaper else None,
        last_reap_deleted=reaper.last_deleted if reaper else None,
        uptime_seconds=round(time.time() - _start_time, 2),
    )

    if overall == "unhealthy":
        logger.warning("Health check: database unreachable")
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return body
