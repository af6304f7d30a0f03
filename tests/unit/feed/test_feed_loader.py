"""Unit tests for the GTFS feed loader against an in-memory database."""

import pytest

from conftest import FALLBACK_URL, FEED_URL, SAMPLE_FEED, build_feed_zip, damaged_feed_zip, feed_server
from src.gtfs_bc.feed.domain.entities.feed import FeedStatus
from src.gtfs_bc.feed.domain.exceptions import DownloadError, FeedSyncError, ParseError, SyncTimeoutError
from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.feed.infrastructure.services.feed_downloader import FeedDownloader
from src.gtfs_bc.feed.infrastructure.services.feed_loader import GTFSFeedLoader
from src.gtfs_bc.route.infrastructure.models import RouteModel
from src.gtfs_bc.stop.infrastructure.models import StopModel
from src.gtfs_bc.stop_time.infrastructure.models import StopTimeModel
from src.gtfs_bc.trip.infrastructure.models import TripModel


def make_loader(responses, batch_size=10000):
    transport = feed_server(responses)
    downloader = FeedDownloader(FEED_URL, FALLBACK_URL, transport=transport)
    return GTFSFeedLoader(FEED_URL, FALLBACK_URL, downloader=downloader, batch_size=batch_size)


def table_counts(db):
    return {
        "stops": db.query(StopModel).count(),
        "routes": db.query(RouteModel).count(),
        "trips": db.query(TripModel).count(),
        "stop_times": db.query(StopTimeModel).count(),
    }


class StaticDownloader:
    """Downloader stub that always returns the same archive."""

    timeout = 120.0

    def __init__(self, content):
        self.content = content

    def obtain(self, timeout=None):
        return self.content, FEED_URL


class TestFeedSync:
    """Tests for a successful sync."""

    def test_sample_feed_counts(self, db_session, sample_feed_zip):
        """A bad latitude skips one stop; everything else imports."""
        loader = make_loader({FEED_URL: (200, sample_feed_zip)})
        summary = loader.sync(db_session)

        assert summary.count("stops") == 2
        assert summary.count("routes") == 1
        assert summary.count("trips") == 1
        assert summary.count("stop_times") == 4
        assert summary.count("agencies") == 1
        assert summary.count("calendar") == 1
        assert summary.tables["stops"].skipped == 1
        assert summary.skipped == 1
        assert summary.feed_version == "2025-10-01"
        assert summary.source_url == FEED_URL

    def test_feed_row_committed(self, db_session, session_factory, sample_feed_zip):
        """The new feed row is committed with its per-table counts."""
        summary = make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)

        other = session_factory()
        try:
            feed = other.query(FeedModel).one()
            assert feed.id == summary.feed_id
            assert feed.status == FeedStatus.COMPLETED.value
            assert feed.stops_count == 2
            assert feed.stop_times_count == 4
            assert feed.skipped_rows == 1
            assert table_counts(other) == {"stops": 2, "routes": 1, "trips": 1, "stop_times": 4}
        finally:
            other.close()

    def test_referential_integrity(self, db_session, sample_feed_zip):
        """Every stop_time and trip reference resolves after commit."""
        make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)

        stop_ids = {s.id for s in db_session.query(StopModel).all()}
        trip_ids = {t.id for t in db_session.query(TripModel).all()}
        route_ids = {r.id for r in db_session.query(RouteModel).all()}

        for stop_time in db_session.query(StopTimeModel).all():
            assert stop_time.trip_id in trip_ids
            assert stop_time.stop_id in stop_ids
        for trip in db_session.query(TripModel).all():
            assert trip.route_id in route_ids

    def test_resync_identical_content_gives_identical_counts(self, db_session, sample_feed_zip):
        """Syncing the same bytes twice replaces the data instead of duplicating it."""
        loader = make_loader({FEED_URL: (200, sample_feed_zip)})
        first = loader.sync(db_session)
        counts_after_first = table_counts(db_session)
        second = loader.sync(db_session)

        assert first.counts == second.counts
        assert table_counts(db_session) == counts_after_first
        assert second.feed_id != first.feed_id
        assert db_session.query(FeedModel).count() == 2

    def test_fallback_url_used_when_primary_fails(self, db_session, sample_feed_zip):
        loader = make_loader({
            FEED_URL: (503, b"maintenance"),
            FALLBACK_URL: (200, sample_feed_zip),
        })
        summary = loader.sync(db_session)
        assert summary.source_url == FALLBACK_URL
        assert summary.count("stops") == 2

    def test_files_inside_a_folder(self, db_session):
        """Archives that wrap the tables in a directory are accepted."""
        content = build_feed_zip(SAMPLE_FEED, folder="gtfs/")
        summary = make_loader({FEED_URL: (200, content)}).sync(db_session)
        assert summary.count("stop_times") == 4

    def test_missing_optional_tables(self, db_session):
        """Absent optional files import as zero rows."""
        files = {k: v for k, v in SAMPLE_FEED.items() if k not in ("agency.txt", "calendar.txt", "feed_info.txt")}
        summary = make_loader({FEED_URL: (200, build_feed_zip(files))}).sync(db_session)
        assert summary.count("agencies") == 0
        assert summary.count("shapes") == 0
        assert summary.feed_version is None
        assert summary.count("stops") == 2

    def test_duplicate_ids_are_skipped(self, db_session):
        """A repeated key skips only the duplicate row, across batch boundaries too."""
        files = dict(SAMPLE_FEED)
        files["stops.txt"] = (
            "stop_id,stop_name,stop_lat,stop_lon\n"
            "PA1,Plaza de Armas,-33.4378,-70.6505\n"
            "PA2,Santa Lucia,-33.4400,-70.6440\n"
            "PA1,Plaza de Armas (dup),-33.4378,-70.6505\n"
            "PA4,Bellas Artes,-33.4360,-70.6430\n"
        )
        loader = make_loader({FEED_URL: (200, build_feed_zip(files))}, batch_size=2)
        summary = loader.sync(db_session)

        assert summary.count("stops") == 3
        assert summary.tables["stops"].skipped == 1
        assert db_session.query(StopModel).filter(StopModel.id == "PA1").one().name == "Plaza de Armas"
        assert summary.count("stop_times") == 4

    def test_unknown_parent_station_is_cleared(self, db_session):
        files = dict(SAMPLE_FEED)
        files["stops.txt"] = (
            "stop_id,stop_name,stop_lat,stop_lon,location_type,parent_station\n"
            "EST,Estacion,-33.4378,-70.6505,1,\n"
            "PA1,Anden 1,-33.4378,-70.6505,0,EST\n"
            "PA2,Anden 2,-33.4400,-70.6440,0,NOPE\n"
        )
        make_loader({FEED_URL: (200, build_feed_zip(files))}).sync(db_session)

        assert db_session.get(StopModel, "PA1").parent_station_id == "EST"
        assert db_session.get(StopModel, "PA2").parent_station_id is None

    def test_damaged_optional_table_is_dropped(self, db_session):
        """A calendar.txt that fails its CRC check only loses that table."""
        content = damaged_feed_zip("calendar.txt", b"L,1,1,1,1,1,0,0", b"L,1,1,1,1,1,1,0")
        summary = make_loader({FEED_URL: (200, content)}).sync(db_session)

        assert summary.count("calendar") == 0
        assert summary.tables["calendar"].errors == 1
        assert summary.count("stops") == 2
        assert summary.count("stop_times") == 4
        assert db_session.query(FeedModel).count() == 1


class TestFeedSyncFailures:
    """Failed syncs never change the committed dataset."""

    def test_both_downloads_fail_keeps_previous_feed(self, db_session, sample_feed_zip):
        make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)
        before = table_counts(db_session)

        failing = make_loader({FEED_URL: (500, b"error"), FALLBACK_URL: (404, b"missing")})
        with pytest.raises(DownloadError) as exc_info:
            failing.sync(db_session)

        message = str(exc_info.value)
        assert FEED_URL in message
        assert FALLBACK_URL in message
        assert table_counts(db_session) == before
        assert db_session.query(FeedModel).count() == 1

    def test_missing_required_file(self, db_session, sample_feed_zip):
        make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)
        before = table_counts(db_session)

        files = {k: v for k, v in SAMPLE_FEED.items() if k != "stop_times.txt"}
        with pytest.raises(ParseError, match="stop_times.txt"):
            make_loader({FEED_URL: (200, build_feed_zip(files))}).sync(db_session)

        assert table_counts(db_session) == before

    def test_missing_required_column(self, db_session):
        files = dict(SAMPLE_FEED)
        files["stops.txt"] = "stop_id,stop_name,stop_lon\nPA1,Plaza,-70.6505\n"
        with pytest.raises(ParseError, match="stop_lat"):
            make_loader({FEED_URL: (200, build_feed_zip(files))}).sync(db_session)
        assert db_session.query(FeedModel).count() == 0

    def test_damaged_required_table_rolls_back(self, db_session, sample_feed_zip):
        """A stop_times.txt that fails its CRC check is a ParseError, not a zip error."""
        make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)
        before = table_counts(db_session)

        content = damaged_feed_zip("stop_times.txt", b"06:04:00,06:04:00", b"06:05:00,06:05:00")
        with pytest.raises(ParseError, match="stop_times.txt"):
            make_loader({FEED_URL: (200, content)}).sync(db_session)

        assert table_counts(db_session) == before
        assert db_session.query(FeedModel).count() == 1

    def test_not_a_zip(self, db_session):
        with pytest.raises(ParseError, match="zip"):
            make_loader({FEED_URL: (200, b"<html>not a feed</html>")}).sync(db_session)

    def test_deadline_exceeded_rolls_back(self, db_session, sample_feed_zip):
        make_loader({FEED_URL: (200, sample_feed_zip)}).sync(db_session)
        before = table_counts(db_session)

        loader = GTFSFeedLoader(FEED_URL, "", downloader=StaticDownloader(sample_feed_zip))
        with pytest.raises(SyncTimeoutError):
            loader.sync(db_session, deadline_seconds=-1)

        assert table_counts(db_session) == before
        assert db_session.query(FeedModel).count() == 1

    def test_empty_feed_url(self, db_session):
        loader = GTFSFeedLoader("", "", downloader=StaticDownloader(b""))
        with pytest.raises(FeedSyncError, match="Feed URL is empty"):
            loader.sync(db_session)
