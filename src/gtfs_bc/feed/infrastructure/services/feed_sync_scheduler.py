"""GTFS static feed sync scheduler.

Keeps the stored feed fresh: on startup and then once per check interval it
looks at the newest committed feed and runs a sync when that feed is older
than the staleness threshold. Syncs run in a worker thread so request
handling is never blocked.
"""
import asyncio
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.database import SessionLocal
from src.gtfs_bc.feed.domain.entities.feed import FeedStatus, SyncSummary
from src.gtfs_bc.feed.domain.exceptions import FeedSyncError, SyncAlreadyRunningError
from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.feed.infrastructure.services.feed_loader import GTFSFeedLoader

logger = logging.getLogger(__name__)


def is_sync_due(last_downloaded_at: Optional[datetime], now: datetime, staleness: timedelta) -> bool:
    """A sync is due when no feed exists or the newest one is older than ``staleness``."""
    if last_downloaded_at is None:
        return True
    return now - last_downloaded_at > staleness


class GTFSSyncScheduler:
    """Background scheduler for GTFS static feed refreshes."""

    def __init__(
        self,
        loader_factory: Callable[[], GTFSFeedLoader] = GTFSFeedLoader,
        session_factory: Callable[[], Session] = SessionLocal,
        staleness_days: Optional[int] = None,
        check_interval_seconds: Optional[float] = None,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._loader_factory = loader_factory
        self._session_factory = session_factory
        self.staleness = timedelta(
            days=staleness_days if staleness_days is not None else settings.gtfs.GTFS_STALENESS_DAYS
        )
        self.check_interval = (
            check_interval_seconds
            if check_interval_seconds is not None
            else settings.gtfs.GTFS_SYNC_CHECK_INTERVAL_HOURS * 3600
        )
        self.deadline_seconds = (
            deadline_seconds
            if deadline_seconds is not None
            else settings.gtfs.GTFS_SYNC_DEADLINE_MINUTES * 60
        )
        self._clock = clock

        # At most one sync at a time, whoever triggers it
        self._sync_lock = threading.Lock()

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_check: Optional[datetime] = None
        self._last_sync: Optional[datetime] = None
        self._last_summary: Optional[SyncSummary] = None
        self._last_error: Optional[str] = None
        self._sync_count = 0
        self._error_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    @property
    def last_summary(self) -> Optional[SyncSummary]:
        return self._last_summary

    @property
    def status(self) -> dict:
        """Get scheduler status."""
        return {
            "running": self._running,
            "syncing": self.is_syncing,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "last_sync": self._last_sync.isoformat() if self._last_sync else None,
            "last_summary": self._last_summary.to_dict() if self._last_summary else None,
            "sync_count": self._sync_count,
            "error_count": self._error_count,
            "last_error": self._last_error,
            "staleness_days": self.staleness.days,
            "interval_seconds": self.check_interval,
        }

    async def start(self):
        """Start the background check task."""
        if self._running:
            logger.warning("GTFS sync scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._check_loop())
        logger.info(
            f"GTFS sync scheduler started (staleness: {self.staleness.days} days, "
            f"interval: {self.check_interval}s)"
        )

    async def stop(self):
        """Stop the background check task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("GTFS sync scheduler stopped")

    async def _check_loop(self):
        """Check on startup, then once per interval."""
        while self._running:
            try:
                loop = asyncio.get_event_loop()
                await loop.run_in_executor(None, self.check_and_sync)
            except asyncio.CancelledError:
                logger.info("GTFS sync scheduler task cancelled")
                raise
            except Exception as e:
                self._error_count += 1
                logger.error(f"GTFS sync check error: {e} - will retry in {self.check_interval}s")

            await asyncio.sleep(self.check_interval)

    def last_downloaded_at(self, db: Session) -> Optional[datetime]:
        """Download time of the newest committed feed."""
        return (
            db.query(func.max(FeedModel.downloaded_at))
            .filter(FeedModel.status == FeedStatus.COMPLETED.value)
            .scalar()
        )

    def check_and_sync(self, raise_errors: bool = False) -> Optional[SyncSummary]:
        """Run a sync if the stored feed is stale. Returns the summary, if any.

        A failed sync is logged and recorded in ``status``; with
        ``raise_errors`` the FeedSyncError is also re-raised to the caller.
        """
        now = self._clock()
        self._last_check = now

        db = self._session_factory()
        try:
            last = self.last_downloaded_at(db)
        except SQLAlchemyError as e:
            logger.warning(f"Could not read last GTFS sync time, forcing sync: {e}")
            last = None
        finally:
            db.close()

        if not is_sync_due(last, now, self.staleness):
            age_days = (now - last).total_seconds() / 86400
            logger.info(f"GTFS data is current (last sync {last}, {age_days:.1f} days ago)")
            return None

        if last is None:
            logger.info("No previous GTFS sync found, starting sync")
        else:
            logger.info(f"GTFS data older than {self.staleness.days} days (last sync {last}), starting sync")

        try:
            return self.trigger_sync()
        except SyncAlreadyRunningError:
            logger.info("GTFS sync already in progress, skipping scheduled sync")
            if raise_errors:
                raise
            return None
        except FeedSyncError as e:
            logger.error(f"Scheduled GTFS sync failed: {e}")
            if raise_errors:
                raise
            return None

    def trigger_sync(self) -> SyncSummary:
        """Run a sync now.

        Raises SyncAlreadyRunningError if another sync holds the guard, and
        FeedSyncError if the sync itself fails.
        """
        if not self._sync_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError()

        db = self._session_factory()
        try:
            logger.info("Starting GTFS sync (this may take several minutes)...")
            summary = self._loader_factory().sync(db, deadline_seconds=self.deadline_seconds)
        except FeedSyncError as e:
            self._error_count += 1
            self._last_error = str(e)
            raise
        finally:
            db.close()
            self._sync_lock.release()

        self._last_sync = self._clock()
        self._last_summary = summary
        self._last_error = None
        self._sync_count += 1
        return summary

