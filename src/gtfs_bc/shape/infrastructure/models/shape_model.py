from sqlalchemy import Column, String, Float, Integer, ForeignKey, Index
from core.base import Base


class ShapePointModel(Base):
    """SQLAlchemy model for GTFS Shape points."""

    __tablename__ = "gtfs_shapes"

    # Composite primary key
    shape_id = Column(String(100), primary_key=True)
    sequence = Column(Integer, primary_key=True)

    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)
    dist_traveled = Column(Float, nullable=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)

    __table_args__ = (
        Index("ix_shapes_shape_id", "shape_id"),
    )
