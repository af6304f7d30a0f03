"""FastAPI dependencies resolving services from the application containers.

The containers are attached to ``app.state`` by ``create_app``.
"""
from fastapi import Request

from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler
from src.routing_bc.infrastructure.services.engine_supervisor import EngineSupervisor
from src.routing_bc.infrastructure.services.itinerary_service import ItineraryService


def get_sync_scheduler(request: Request) -> GTFSSyncScheduler:
    return request.app.state.gtfs_container.sync_scheduler()


def get_engine_supervisor(request: Request) -> EngineSupervisor:
    return request.app.state.routing_container.supervisor()


def get_itinerary_service(request: Request) -> ItineraryService:
    return request.app.state.routing_container.itinerary_service()
