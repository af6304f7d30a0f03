from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class FeedStatus(str, Enum):
    """Status of a feed sync."""
    IMPORTING = "importing"
    COMPLETED = "completed"


# Import order; deletion runs in reverse
TABLE_ORDER = (
    "agencies",
    "stops",
    "routes",
    "shapes",
    "trips",
    "stop_times",
    "calendar",
    "calendar_dates",
    "transfers",
    "frequencies",
)


@dataclass
class TableImportStats:
    """Row counters for a single feed table."""
    table: str
    imported: int = 0
    skipped: int = 0
    errors: int = 0

    def __str__(self) -> str:
        return (
            f"{self.table}: {self.imported} imported, "
            f"{self.skipped} skipped, {self.errors} errors"
        )


@dataclass
class SyncSummary:
    """Outcome of a committed feed sync."""

    feed_id: int
    source_url: str
    downloaded_at: datetime
    feed_version: Optional[str] = None
    tables: Dict[str, TableImportStats] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    def count(self, table: str) -> int:
        stats = self.tables.get(table)
        return stats.imported if stats else 0

    @property
    def counts(self) -> Dict[str, int]:
        return {name: self.count(name) for name in TABLE_ORDER}

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.tables.values())

    def to_dict(self) -> dict:
        return {
            "feed_id": self.feed_id,
            "source_url": self.source_url,
            "feed_version": self.feed_version,
            "downloaded_at": self.downloaded_at.isoformat(),
            "counts": self.counts,
            "skipped": self.skipped,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }

    def __str__(self) -> str:
        parts = ", ".join(f"{name}={count}" for name, count in self.counts.items())
        return f"Feed {self.feed_id} ({self.feed_version or 'unversioned'}): {parts}"
