"""Feed-related response schemas."""

from datetime import datetime
from typing import Optional, Dict
from pydantic import BaseModel


class FeedResponse(BaseModel):
    """A committed GTFS feed snapshot with its per-table row counts."""
    id: int
    source_url: str
    feed_version: Optional[str]
    status: str
    downloaded_at: datetime
    agencies_count: int
    stops_count: int
    routes_count: int
    shapes_count: int
    trips_count: int
    stop_times_count: int
    calendar_count: int
    calendar_dates_count: int
    transfers_count: int
    frequencies_count: int
    skipped_rows: int

    class Config:
        from_attributes = True


class SyncSummaryResponse(BaseModel):
    feed_id: int
    source_url: str
    feed_version: Optional[str] = None
    downloaded_at: datetime
    counts: Dict[str, int]
    skipped: int
    elapsed_seconds: float


class SyncStatusResponse(BaseModel):
    """Scheduler state as reported by GTFSSyncScheduler.status."""
    running: bool
    syncing: bool
    last_check: Optional[str] = None
    last_sync: Optional[str] = None
    last_summary: Optional[SyncSummaryResponse] = None
    sync_count: int
    error_count: int
    last_error: Optional[str] = None
    staleness_days: int
    interval_seconds: float
