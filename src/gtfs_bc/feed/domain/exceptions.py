"""Errors raised by the feed ingestion pipeline.

Any of these aborts the sync and rolls back, leaving the previously
committed feed in place. Single bad rows are never raised; see
``row_parsers.RowResult``.
"""
from typing import Optional


class FeedSyncError(Exception):
    """Base class for feed sync failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DownloadError(FeedSyncError):
    """Primary and fallback feed fetch both failed."""

    def __init__(
        self,
        primary_url: str,
        primary_error: str,
        fallback_url: Optional[str] = None,
        fallback_error: Optional[str] = None,
    ):
        self.primary_url = primary_url
        self.primary_error = primary_error
        self.fallback_url = fallback_url
        self.fallback_error = fallback_error

        message = f"download {primary_url} failed: {primary_error}"
        if fallback_url:
            message += f"; fallback {fallback_url} failed: {fallback_error}"
        super().__init__(message)


class ParseError(FeedSyncError):
    """The archive or one of its required tables is missing or unreadable."""


class SyncTimeoutError(FeedSyncError):
    """The sync exceeded its deadline."""


class SyncAlreadyRunningError(FeedSyncError):
    """Another sync holds the guard."""

    def __init__(self):
        super().__init__("a feed sync is already running")
