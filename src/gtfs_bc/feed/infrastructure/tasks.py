import logging

from celery import shared_task

from src.gtfs_bc.feed.domain.exceptions import DownloadError, FeedSyncError, SyncAlreadyRunningError
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=600)
def sync_gtfs_feed(self, force: bool = False):
    """Refresh the GTFS static feed from a worker.

    With ``force`` the staleness check is skipped. Download failures are
    retried; parse failures are not, since the same archive would fail again.
    """
    scheduler = GTFSSyncScheduler()
    try:
        summary = scheduler.trigger_sync() if force else scheduler.check_and_sync(raise_errors=True)
    except SyncAlreadyRunningError:
        logger.info("GTFS sync already running in this worker, skipping")
        return {"status": "skipped"}
    except DownloadError as e:
        logger.error(f"GTFS feed download failed: {e}")
        raise self.retry(exc=e)
    except FeedSyncError as e:
        logger.error(f"GTFS sync failed: {e}")
        raise

    if summary is None:
        return {"status": "current"}
    return {"status": "synced", **summary.to_dict()}
