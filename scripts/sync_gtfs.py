#!/usr/bin/env python3
"""Download the GTFS feed and replace the stored dataset.

Usage:
    # Sync from the configured feed URL (GTFS_FEED_URL)
    python scripts/sync_gtfs.py

    # Sync only if the stored feed is older than the staleness threshold
    python scripts/sync_gtfs.py --if-stale

    # Sync from a different source
    python scripts/sync_gtfs.py --url https://example.org/gtfs.zip --fallback-url ''

    # Create the tables first (local bootstrap without Alembic)
    python scripts/sync_gtfs.py --create-tables

Exit codes: 0 on success (or nothing to do), 1 when the sync failed. A failed
sync never touches the previously committed feed.
"""

import sys
import argparse
import logging
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv()

from core.config import settings
from core.database import create_all
from core.logging_config import setup_logging
from src.gtfs_bc.feed.domain.exceptions import FeedSyncError
from src.gtfs_bc.feed.infrastructure.services.feed_loader import GTFSFeedLoader
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the GTFS static feed")
    parser.add_argument("--url", default=settings.gtfs.GTFS_FEED_URL, help="Primary feed URL")
    parser.add_argument(
        "--fallback-url",
        default=settings.gtfs.GTFS_FALLBACK_URL,
        help="Fallback feed URL, tried only if the primary fails ('' to disable)",
    )
    parser.add_argument(
        "--deadline-minutes",
        type=float,
        default=settings.gtfs.GTFS_SYNC_DEADLINE_MINUTES,
        help="Abort and roll back after this many minutes",
    )
    parser.add_argument("--if-stale", action="store_true", help="Only sync when the stored feed is stale")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables before syncing")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    if args.create_tables:
        create_all()
        logger.info("Tables created")

    scheduler = GTFSSyncScheduler(
        loader_factory=lambda: GTFSFeedLoader(feed_url=args.url, fallback_url=args.fallback_url),
        deadline_seconds=args.deadline_minutes * 60,
    )

    try:
        if args.if_stale:
            summary = scheduler.check_and_sync(raise_errors=True)
            if summary is None:
                return 0
        else:
            summary = scheduler.trigger_sync()
    except FeedSyncError as e:
        logger.error(f"GTFS sync failed, previous feed kept: {e}")
        return 1

    print("\n" + "=" * 60)
    print(f"GTFS SYNC COMPLETE - feed {summary.feed_id} ({summary.feed_version or 'unversioned'})")
    print("=" * 60)
    print(f"Source:  {summary.source_url}")
    for table, stats in summary.tables.items():
        print(f"  {table:<15} {stats.imported:>10,} imported  {stats.skipped:>6,} skipped")
    print(f"Elapsed: {summary.elapsed_seconds:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
