from sqlalchemy import Column, String, Integer, ForeignKey
from core.base import Base


class RouteModel(Base):
    """SQLAlchemy model for GTFS Route."""

    __tablename__ = "gtfs_routes"

    id = Column(String(100), primary_key=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
    # agency.txt is optional, so this is a plain reference
    agency_id = Column(String(100), nullable=True)
    short_name = Column(String(50), nullable=True)
    long_name = Column(String(255), nullable=True)
    route_type = Column(Integer, nullable=False, default=3)  # 3 = Bus
    color = Column(String(6), nullable=True)  # Hex color without #
    text_color = Column(String(6), nullable=True)
