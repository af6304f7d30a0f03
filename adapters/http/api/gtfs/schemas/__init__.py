"""Centralized API schemas for GTFS endpoints."""

from .feed_schemas import (
    FeedResponse,
    SyncSummaryResponse,
    SyncStatusResponse,
)

from .stop_schemas import (
    StopResponse,
    NearbyStopResponse,
)

__all__ = [
    "FeedResponse",
    "SyncSummaryResponse",
    "SyncStatusResponse",
    "StopResponse",
    "NearbyStopResponse",
]
