"""Unit tests for the Celery feed sync task."""

from datetime import datetime

import pytest

from src.gtfs_bc.feed.domain.entities.feed import FeedStatus, SyncSummary
from src.gtfs_bc.feed.domain.exceptions import DownloadError, ParseError, SyncAlreadyRunningError
from src.gtfs_bc.feed.infrastructure import tasks
from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler


class FakeScheduler:
    outcome = None

    def check_and_sync(self, raise_errors=False):
        return self._result()

    def trigger_sync(self):
        return self._result()

    def _result(self):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def fake_scheduler(monkeypatch):
    monkeypatch.setattr(tasks, "GTFSSyncScheduler", FakeScheduler)
    FakeScheduler.outcome = None
    return FakeScheduler


class TestSyncGtfsFeedTask:
    """Tests for sync_gtfs_feed."""

    def test_current_feed(self, fake_scheduler):
        assert tasks.sync_gtfs_feed() == {"status": "current"}

    def test_forced_sync(self, fake_scheduler):
        fake_scheduler.outcome = SyncSummary(
            feed_id=3, source_url="https://feeds.test/gtfs.zip", downloaded_at=datetime(2025, 10, 1)
        )
        result = tasks.sync_gtfs_feed(force=True)
        assert result["status"] == "synced"
        assert result["feed_id"] == 3

    def test_already_running(self, fake_scheduler):
        fake_scheduler.outcome = SyncAlreadyRunningError()
        assert tasks.sync_gtfs_feed(force=True) == {"status": "skipped"}

    def test_parse_error_is_not_retried(self, fake_scheduler):
        fake_scheduler.outcome = ParseError("Required file(s) missing: stops.txt")
        with pytest.raises(ParseError):
            tasks.sync_gtfs_feed(force=True)


class FailingLoader:
    """Loader whose download never succeeds."""

    def sync(self, db, deadline_seconds=None):
        raise DownloadError("https://feeds.test/gtfs.zip", "503 Service Unavailable")


class TestScheduledSyncFailure:
    """The unforced task against a real scheduler with an empty database."""

    @pytest.fixture
    def failing_scheduler(self, monkeypatch, session_factory):
        scheduler = GTFSSyncScheduler(loader_factory=FailingLoader, session_factory=session_factory)
        monkeypatch.setattr(tasks, "GTFSSyncScheduler", lambda: scheduler)
        return scheduler

    def test_download_failure_reaches_retry(self, failing_scheduler):
        """Outside a worker, retry re-raises the download error instead of reporting success."""
        with pytest.raises(DownloadError, match="503"):
            tasks.sync_gtfs_feed()
        assert failing_scheduler.status["error_count"] == 1

    def test_current_only_when_feed_is_fresh(self, failing_scheduler, db_session):
        db_session.add(FeedModel(
            source_url="https://feeds.test/gtfs.zip",
            status=FeedStatus.COMPLETED.value,
            downloaded_at=datetime.utcnow(),
        ))
        db_session.commit()
        assert tasks.sync_gtfs_feed() == {"status": "current"}
        assert failing_scheduler.status["error_count"] == 0
