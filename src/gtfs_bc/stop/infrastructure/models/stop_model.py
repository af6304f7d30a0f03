from sqlalchemy import Column, String, Float, Integer, ForeignKey, Index
from core.base import Base


class StopModel(Base):
    """SQLAlchemy model for GTFS Stop."""

    __tablename__ = "gtfs_stops"

    id = Column(String(100), primary_key=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
    name = Column(String(255), nullable=False)
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    code = Column(String(50), nullable=True)
    description = Column(String(500), nullable=True)
    zone_id = Column(String(100), nullable=True)
    location_type = Column(Integer, nullable=False, default=0)
    # Resolved against stops of the same feed; null when the parent is absent
    parent_station_id = Column(String(100), nullable=True)
    wheelchair_boarding = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_stops_lat_lon", "lat", "lon"),
    )
