from sqlalchemy import Column, String, Integer, Float, ForeignKey, Index
from sqlalchemy.orm import relationship
from core.base import Base


class StopTimeModel(Base):
    """SQLAlchemy model for GTFS StopTime."""

    __tablename__ = "gtfs_stop_times"

    # Composite primary key
    trip_id = Column(String(100), ForeignKey("gtfs_trips.id"), primary_key=True)
    stop_sequence = Column(Integer, primary_key=True)

    stop_id = Column(String(100), ForeignKey("gtfs_stops.id"), nullable=False)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
    # HH:MM:SS, may exceed 24:00:00; empty for untimed stops
    arrival_time = Column(String(10), nullable=True)
    departure_time = Column(String(10), nullable=True)
    arrival_seconds = Column(Integer, nullable=True)  # For efficient queries
    departure_seconds = Column(Integer, nullable=True)
    shape_dist_traveled = Column(Float, nullable=True)

    # Relationships
    trip = relationship("TripModel", backref="stop_times")
    stop = relationship("StopModel", backref="stop_times")

    # Indexes for common queries
    __table_args__ = (
        Index("ix_stop_times_stop_id", "stop_id"),
        Index("ix_stop_times_arrival", "arrival_seconds"),
    )
