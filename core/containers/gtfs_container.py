from dependency_injector import containers, providers

from core.database import SessionLocal
from src.gtfs_bc.feed.infrastructure.services.feed_loader import GTFSFeedLoader
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler


class GTFSContainer(containers.DeclarativeContainer):
    """Dependency injection container for GTFS static feed sync."""

    session_factory = providers.Object(SessionLocal)

    # A fresh loader per sync
    feed_loader = providers.Factory(GTFSFeedLoader)

    sync_scheduler = providers.Singleton(
        GTFSSyncScheduler,
        loader_factory=feed_loader.provider,
        session_factory=session_factory,
    )
