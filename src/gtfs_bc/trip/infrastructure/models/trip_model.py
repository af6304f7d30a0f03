from sqlalchemy import Column, String, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from core.base import Base


class TripModel(Base):
    """SQLAlchemy model for GTFS Trip."""

    __tablename__ = "gtfs_trips"

    id = Column(String(100), primary_key=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
    route_id = Column(String(100), ForeignKey("gtfs_routes.id"), nullable=False)
    # Services may be defined only in calendar_dates.txt, so no FK here
    service_id = Column(String(100), nullable=False, default="")
    headsign = Column(String(255), nullable=True)
    direction_id = Column(Integer, nullable=True)  # 0 = outbound, 1 = inbound
    shape_id = Column(String(100), nullable=True)

    # Relationships
    route = relationship("RouteModel", backref="trips")

    __table_args__ = (
        Index("ix_trips_route_id", "route_id"),
    )
