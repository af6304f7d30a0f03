from sqlalchemy import Column, String, Integer, ForeignKey, Index
from core.base import Base


class TransferModel(Base):
    """SQLAlchemy model for GTFS transfers.txt."""

    __tablename__ = "gtfs_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_stop_id = Column(String(100), ForeignKey("gtfs_stops.id"), nullable=False)
    to_stop_id = Column(String(100), ForeignKey("gtfs_stops.id"), nullable=False)

    # 0 = Recommended, 1 = Timed, 2 = Minimum time required, 3 = Not possible
    transfer_type = Column(Integer, nullable=False, default=0)

    # Minimum transfer time in seconds
    min_transfer_time = Column(Integer, nullable=True)
    feed_id = Column(Integer, ForeignKey("gtfs_feeds.id"), nullable=True)

    __table_args__ = (
        Index("ix_transfers_from_stop", "from_stop_id"),
    )
