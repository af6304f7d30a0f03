from dependency_injector import containers, providers

from core.config import settings as app_settings
from src.routing_bc.infrastructure.services.engine_supervisor import EngineSupervisor
from src.routing_bc.infrastructure.services.graphhopper_client import GraphHopperClient
from src.routing_bc.infrastructure.services.itinerary_service import ItineraryService
from src.routing_bc.infrastructure.services.process_launcher import default_launcher


class RoutingContainer(containers.DeclarativeContainer):
    """Dependency injection container for the routing engine."""

    settings = providers.Object(app_settings.graphhopper)

    launcher = providers.Singleton(
        default_launcher,
        log_file=settings.provided.GRAPHHOPPER_LOG_FILE,
    )

    client = providers.Singleton(
        GraphHopperClient,
        base_url=settings.provided.GRAPHHOPPER_URL,
        timeout=settings.provided.GRAPHHOPPER_FOOT_TIMEOUT,
        pt_timeout=settings.provided.GRAPHHOPPER_PT_TIMEOUT,
        locale=settings.provided.GRAPHHOPPER_LOCALE,
    )

    # One supervisor per process: it owns the engine handle
    supervisor = providers.Singleton(
        EngineSupervisor,
        client=client,
        launcher=launcher,
    )

    itinerary_service = providers.Singleton(
        ItineraryService,
        client=client,
        supervisor=supervisor,
    )
