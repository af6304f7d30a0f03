from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, Index
from core.base import Base


class FeedModel(Base):
    """SQLAlchemy model for a committed GTFS feed snapshot.

    One row per successful sync. Rows are never updated after commit; the
    newest one is the active dataset.
    """

    __tablename__ = "gtfs_feeds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_url = Column(String(500), nullable=False)
    feed_version = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    downloaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Imported rows per table
    agencies_count = Column(Integer, nullable=False, default=0)
    stops_count = Column(Integer, nullable=False, default=0)
    routes_count = Column(Integer, nullable=False, default=0)
    shapes_count = Column(Integer, nullable=False, default=0)
    trips_count = Column(Integer, nullable=False, default=0)
    stop_times_count = Column(Integer, nullable=False, default=0)
    calendar_count = Column(Integer, nullable=False, default=0)
    calendar_dates_count = Column(Integer, nullable=False, default=0)
    transfers_count = Column(Integer, nullable=False, default=0)
    frequencies_count = Column(Integer, nullable=False, default=0)
    skipped_rows = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_gtfs_feeds_downloaded_at", "downloaded_at"),
    )

    def __repr__(self):
        return f"<Feed {self.id} {self.feed_version or '-'} @ {self.downloaded_at}>"
