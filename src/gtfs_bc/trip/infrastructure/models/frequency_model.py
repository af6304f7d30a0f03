from sqlalchemy import Column, String, Integer, ForeignKey
from core.base import Base


class FrequencyModel(Base):
    """SQLAlchemy model for GTFS frequencies.txt (headway-based service)."""

    __tablename__ = "gtfs_frequencies"

    trip_id = Column(String(100), ForeignKey("gtfs_trips.id"), primary_key=True)
    start_time = Column(String(10), primary_key=True)  # HH:MM:SS, may exceed 24h
    end_time = Column(String(10), nullable=False)
    headway_secs = Column(Integer, nullable=False)
    exact_times = Column(Integer, nullable=False, default=0)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
