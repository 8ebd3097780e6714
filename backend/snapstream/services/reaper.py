"""
SnapStream Backend — Expiry Reaper
====================================

What:  Background job that physically deletes snaps older than the TTL.
How:   APScheduler AsyncIOScheduler runs `run_once()` on a fixed interval,
       with the first pass due immediately at startup. Each pass is a single
       DELETE ... RETURNING id inside one transaction; hashtag rows follow via
       ON DELETE CASCADE.
Who:   Started and stopped by the application lifespan (main.py); its status
       is reported by GET /health.

Retry Strategy:
    OperationalError (lost connection, lock timeout) → tenacity retries with
    exponential backoff + jitter, bounded by reaper_retry_attempts. Every
    attempt opens a fresh transaction, so a failed attempt deletes nothing.
    After the last attempt the pass is logged as failed and the scheduler
    simply tries again on the next tick.

Read paths already hide expired snaps by filtering on expires_at; the reaper
only reclaims storage.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from snapstream.config import Settings
from snapstream.models.snap import Snap

logger = logging.getLogger(__name__)

REAPER_JOB_ID = "expiry_reaper"


class ExpiryReaper:
    """
    Periodic purge of expired snaps.

    Attributes:
        last_run_at:    When the most recent pass finished (success or failure)
        last_deleted:   Rows deleted by the most recent successful pass
        last_error:     Message of the most recent failure, cleared on success
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta,
        interval_seconds: int = 3600,
        retry_attempts: int = 3,
        retry_min_wait: float = 1,
        retry_max_wait: float = 10,
    ):
        self.session_factory = session_factory
        self.ttl = ttl
        self.interval_seconds = interval_seconds
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.last_run_at: Optional[datetime] = None
        self.last_deleted: Optional[int] = None
        self.last_error: Optional[str] = None

    @classmethod
    def from_settings(
        cls, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ) -> "ExpiryReaper":
        return cls(
            session_factory,
            ttl=settings.snap_ttl,
            interval_seconds=settings.reaper_interval_seconds,
            retry_attempts=settings.reaper_retry_attempts,
            retry_min_wait=settings.reaper_retry_min_wait,
            retry_max_wait=settings.reaper_retry_max_wait,
        )

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    async def _delete_expired_once(self) -> List[uuid.UUID]:
        cutoff = datetime.now(timezone.utc) - self.ttl
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(Snap)
                    .where(Snap.created_at < cutoff)
                    .returning(Snap.id)
                    .execution_options(synchronize_session=False)
                )
                return list(result.scalars().all())

    async def purge_expired(self) -> List[uuid.UUID]:
        """
        Delete every snap created more than `ttl` ago.

        Returns:
            Ids of the deleted snaps (empty when nothing had expired).

        Raises:
            OperationalError once the retry budget is spent, or any other
            SQLAlchemyError immediately.
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(OperationalError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry_min_wait,
                max=self.retry_max_wait,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                deleted = await self._delete_expired_once()
        return deleted

    async def run_once(self) -> Optional[int]:
        """
        One scheduled pass. Never raises.

        Returns:
            Number of snaps deleted, or None if the pass failed.
        """
        try:
            deleted = await self.purge_expired()
        except Exception as e:
            self.last_run_at = datetime.now(timezone.utc)
            self.last_error = str(e)
            logger.error("Expiry reaper pass failed: %s", str(e), exc_info=True)
            return None

        self.last_run_at = datetime.now(timezone.utc)
        self.last_deleted = len(deleted)
        self.last_error = None
        if deleted:
            logger.info("Expiry reaper deleted %d expired snaps", len(deleted))
        else:
            logger.debug("Expiry reaper found nothing to delete")
        return len(deleted)

    def start(self) -> None:
        """Schedule run_once every interval_seconds, first run immediately."""
        if self.is_running:
            return

        self.scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=REAPER_JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.start()
        logger.info(
            "Expiry reaper started (ttl=%s, interval=%ds)", self.ttl, self.interval_seconds
        )

    def stop(self) -> None:
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Expiry reaper stopped")
