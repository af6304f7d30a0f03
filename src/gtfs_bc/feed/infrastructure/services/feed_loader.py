"""GTFS feed loader.

Downloads a feed archive and replaces the routable dataset in a single
transaction. Either every table is replaced and a new ``gtfs_feeds`` row is
committed, or nothing changes.
"""
import csv
import io
import logging
import time
import zipfile
import zlib
from datetime import datetime
from io import TextIOWrapper
from typing import Dict, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from src.gtfs_bc.feed.domain.entities.feed import FeedStatus, SyncSummary, TableImportStats
from src.gtfs_bc.feed.domain.exceptions import FeedSyncError, ParseError, SyncTimeoutError
from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.feed.infrastructure.services.feed_downloader import FeedDownloader
from src.gtfs_bc.feed.infrastructure.services.row_parsers import (
    REQUIRED_FILES,
    TABLE_SPECS,
    ParseContext,
    Record,
    TableSpec,
    header_index,
)

logger = logging.getLogger(__name__)

BATCH_SIZE = 10000
# Only the first few problems per table are logged line by line
VERBOSE_PROBLEM_LIMIT = 20
PROGRESS_EVERY = 50000
# Raised by zipfile while inflating a damaged member
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError)


class GTFSFeedLoader:
    """Downloads a GTFS archive and atomically replaces the stored dataset."""

    def __init__(
        self,
        feed_url: Optional[str] = None,
        fallback_url: Optional[str] = None,
        downloader: Optional[FeedDownloader] = None,
        batch_size: int = BATCH_SIZE,
    ):
        self.feed_url = feed_url if feed_url is not None else settings.gtfs.GTFS_FEED_URL
        if fallback_url is None:
            fallback_url = settings.gtfs.GTFS_FALLBACK_URL
        self.fallback_url = fallback_url
        self.downloader = downloader or FeedDownloader(
            self.feed_url,
            self.fallback_url,
            timeout=settings.gtfs.GTFS_DOWNLOAD_TIMEOUT,
        )
        self.batch_size = batch_size

    def sync(self, db: Session, deadline_seconds: Optional[float] = None) -> SyncSummary:
        """Download the feed and replace every GTFS table.

        Raises FeedSyncError (or a subclass) when the sync is aborted; in that
        case the transaction is rolled back and the previous feed stays active.
        """
        if not self.feed_url:
            raise FeedSyncError("Feed URL is empty")

        if deadline_seconds is None:
            deadline_seconds = settings.gtfs.GTFS_SYNC_DEADLINE_MINUTES * 60
        started = time.monotonic()
        deadline = started + deadline_seconds

        download_timeout = min(self.downloader.timeout, deadline_seconds)
        content, source_url = self.downloader.obtain(timeout=download_timeout)
        self._check_deadline(deadline)

        archive = self._open_archive(content)
        with archive:
            members = self._index_members(archive)
            missing = [name for name in REQUIRED_FILES if name not in members]
            if missing:
                raise ParseError(f"Required file(s) missing: {', '.join(missing)}")

            feed_version = self._extract_feed_version(archive, members)
            logger.info(f"Importing GTFS feed {feed_version or '(unversioned)'} from {source_url}")

            try:
                summary = self._replace_dataset(db, archive, members, source_url, feed_version, deadline)
            except FeedSyncError:
                db.rollback()
                raise
            except ARCHIVE_READ_ERRORS as e:
                db.rollback()
                raise ParseError(f"Cannot read feed archive: {e}") from e
            except SQLAlchemyError as e:
                db.rollback()
                raise FeedSyncError(f"Database error during sync: {e}") from e

        summary.elapsed_seconds = time.monotonic() - started
        logger.info(f"GTFS sync complete in {summary.elapsed_seconds:.1f}s: {summary}")
        return summary

    def _replace_dataset(
        self,
        db: Session,
        archive: zipfile.ZipFile,
        members: Dict[str, str],
        source_url: str,
        feed_version: Optional[str],
        deadline: float,
    ) -> SyncSummary:
        self._clear_tables(db)

        feed = FeedModel(
            source_url=source_url,
            feed_version=feed_version,
            status=FeedStatus.IMPORTING.value,
            downloaded_at=datetime.utcnow(),
        )
        db.add(feed)
        db.flush()

        ctx = ParseContext(feed_id=feed.id)
        tables: Dict[str, TableImportStats] = {}

        for spec in TABLE_SPECS:
            self._check_deadline(deadline)
            member = members.get(spec.filename)
            if member is None:
                logger.info(f"{spec.filename} not found (optional)")
                tables[spec.name] = TableImportStats(spec.name)
                continue

            if spec.required:
                stats = self._import_table(db, archive, member, spec, ctx, deadline)
            else:
                stats = self._import_optional_table(db, archive, member, spec, ctx, deadline)

            if spec.name == "stops":
                self._resolve_parent_stations(db)

            tables[spec.name] = stats
            logger.info(f"  {stats}")

        summary = SyncSummary(
            feed_id=feed.id,
            source_url=source_url,
            downloaded_at=feed.downloaded_at,
            feed_version=feed_version,
            tables=tables,
        )
        for name, count in summary.counts.items():
            setattr(feed, f"{name}_count", count)
        feed.skipped_rows = summary.skipped
        feed.status = FeedStatus.COMPLETED.value

        self._check_deadline(deadline)
        db.commit()
        return summary

    def _clear_tables(self, db: Session) -> None:
        """Delete every GTFS table, children before parents."""
        for spec in reversed(TABLE_SPECS):
            db.execute(text(f"DELETE FROM {spec.table}"))
        logger.info("Cleared existing GTFS data")

    def _import_optional_table(
        self,
        db: Session,
        archive: zipfile.ZipFile,
        member: str,
        spec: TableSpec,
        ctx: ParseContext,
        deadline: float,
    ) -> TableImportStats:
        """Import a table whose failure only drops that table."""
        try:
            with db.begin_nested():
                return self._import_table(db, archive, member, spec, ctx, deadline)
        except (ParseError, SQLAlchemyError) as e:
            logger.warning(f"Failed to import optional {spec.filename}, continuing without it: {e}")
            return TableImportStats(spec.name, errors=1)

    def _import_table(
        self,
        db: Session,
        archive: zipfile.ZipFile,
        member: str,
        spec: TableSpec,
        ctx: ParseContext,
        deadline: float,
    ) -> TableImportStats:
        try:
            return self._import_rows(db, archive, member, spec, ctx, deadline)
        except ARCHIVE_READ_ERRORS as e:
            raise ParseError(f"Cannot read {spec.filename}: {e}") from e

    def _import_rows(
        self,
        db: Session,
        archive: zipfile.ZipFile,
        member: str,
        spec: TableSpec,
        ctx: ParseContext,
        deadline: float,
    ) -> TableImportStats:
        stats = TableImportStats(spec.name)
        insert = text(spec.insert_sql)
        batch: List[Tuple[dict, tuple]] = []

        with archive.open(member) as raw:
            reader = csv.reader(TextIOWrapper(raw, encoding="utf-8-sig", errors="replace", newline=""))
            try:
                header = next(reader)
            except StopIteration:
                if spec.required:
                    raise ParseError(f"{spec.filename} is empty")
                return stats
            except csv.Error as e:
                raise ParseError(f"Cannot read {spec.filename} header: {e}") from e

            index = header_index(header)
            missing = [c for c in spec.required_columns if c not in index]
            if missing:
                raise ParseError(
                    f"Missing column {', '.join(missing)} in {spec.filename}"
                )

            while True:
                try:
                    values = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    stats.errors += 1
                    self._log_problem(spec, stats.errors, f"line {reader.line_num}: {e}")
                    continue

                if not any(v.strip() for v in values):
                    continue

                result = spec.parser(Record(values, index, reader.line_num), ctx)
                if not result.is_ok:
                    stats.skipped += 1
                    self._log_problem(spec, stats.skipped, f"line {reader.line_num}: {result.reason}")
                    continue

                batch.append((result.params, result.key))
                if len(batch) >= self.batch_size:
                    self._flush(db, insert, batch, spec, ctx, stats)
                    batch = []
                    self._check_deadline(deadline)

            if batch:
                self._flush(db, insert, batch, spec, ctx, stats)

        return stats

    def _flush(
        self,
        db: Session,
        insert,
        batch: List[Tuple[dict, tuple]],
        spec: TableSpec,
        ctx: ParseContext,
        stats: TableImportStats,
    ) -> None:
        """Insert a batch; on conflict, retry row by row and skip the offenders."""
        try:
            with db.begin_nested():
                db.execute(insert, [params for params, _ in batch])
            accepted = [key for _, key in batch]
        except (IntegrityError, DataError):
            accepted = []
            for params, key in batch:
                try:
                    with db.begin_nested():
                        db.execute(insert, params)
                    accepted.append(key)
                except (IntegrityError, DataError) as e:
                    stats.skipped += 1
                    reason = str(getattr(e, "orig", e)).splitlines()[0]
                    self._log_problem(spec, stats.skipped, f"row {key} rejected: {reason}")

        previous = stats.imported
        stats.imported += len(accepted)
        if spec.register:
            registry = getattr(ctx, spec.register)
            registry.update(key[0] for key in accepted)

        if stats.imported // PROGRESS_EVERY > previous // PROGRESS_EVERY:
            logger.info(f"  Imported {stats.imported:,} {spec.name}...")

    def _resolve_parent_stations(self, db: Session) -> None:
        """Drop parent_station references to stops that were not imported."""
        db.execute(text(
            "UPDATE gtfs_stops SET parent_station_id = NULL "
            "WHERE parent_station_id IS NOT NULL "
            "AND parent_station_id NOT IN (SELECT id FROM gtfs_stops)"
        ))

    @staticmethod
    def _log_problem(spec: TableSpec, count: int, message: str) -> None:
        if count <= VERBOSE_PROBLEM_LIMIT:
            logger.info(f"{spec.filename} {message}")
        elif count == VERBOSE_PROBLEM_LIMIT + 1:
            logger.info(f"{spec.filename}: further problems counted but not logged")

    @staticmethod
    def _check_deadline(deadline: float) -> None:
        if time.monotonic() > deadline:
            raise SyncTimeoutError("Sync deadline exceeded")

    @staticmethod
    def _open_archive(content: bytes) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(io.BytesIO(content))
        except zipfile.BadZipFile as e:
            raise ParseError(f"Feed is not a valid zip archive: {e}") from e

    @staticmethod
    def _index_members(archive: zipfile.ZipFile) -> Dict[str, str]:
        """Map lowercased file names to archive members, ignoring folders."""
        members = {}
        for name in archive.namelist():
            if name.endswith("/"):
                continue
            members.setdefault(name.rsplit("/", 1)[-1].lower(), name)
        return members

    @staticmethod
    def _extract_feed_version(archive: zipfile.ZipFile, members: Dict[str, str]) -> Optional[str]:
        member = members.get("feed_info.txt")
        if member is None:
            return None
        try:
            with archive.open(member) as raw:
                reader = csv.reader(TextIOWrapper(raw, encoding="utf-8-sig", errors="replace", newline=""))
                index = header_index(next(reader))
                record = Record(next(reader), index, 2)
        except (StopIteration, csv.Error, zipfile.BadZipFile, zlib.error, EOFError) as e:
            logger.warning(f"Could not read feed_info.txt: {e}")
            return None
        return record.get("feed_version") or None
