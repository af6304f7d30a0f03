from sqlalchemy import Column, String, Integer, ForeignKey
from core.base import Base


class AgencyModel(Base):
    """SQLAlchemy model for GTFS Agency."""

    __tablename__ = "gtfs_agencies"

    id = Column(String(100), primary_key=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)
    name = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    timezone = Column(String(100), nullable=False, default="America/Santiago")
    lang = Column(String(10), nullable=True)
    phone = Column(String(50), nullable=True)
