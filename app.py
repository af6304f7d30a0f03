import asyncio
import hmac
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
load_dotenv()  # Load .env file before importing settings

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from core.config import settings
from core.containers import GTFSContainer, RoutingContainer
from core.logging_config import setup_logging
from core.rate_limiter import limiter, rate_limit_exceeded_handler, RateLimits
from src.gtfs_bc.feed.domain.exceptions import FeedSyncError, SyncAlreadyRunningError
from src.routing_bc.domain.exceptions import EngineNotFoundError, EngineStartError
from src.routing_bc.infrastructure.services.engine_supervisor import EngineSupervisor

logger = logging.getLogger(__name__)


def _start_engine(supervisor: EngineSupervisor) -> None:
    """Start GraphHopper; a missing installation only disables routing."""
    try:
        supervisor.start()
    except (EngineNotFoundError, EngineStartError) as e:
        logger.error(f"Routing engine unavailable, routes will use the straight-line fallback: {e}")


def _log_engine_start_failure(future: asyncio.Future) -> None:
    """Done callback for the background engine start."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Routing engine start crashed: {exc!r}", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the routing engine and the feed sync scheduler; stop both on shutdown."""
    supervisor = app.state.routing_container.supervisor()
    scheduler = app.state.gtfs_container.sync_scheduler()

    if settings.graphhopper.GRAPHHOPPER_AUTOSTART:
        # Not awaited: the engine may take minutes to load its graph
        loop = asyncio.get_event_loop()
        app.state.engine_start = loop.run_in_executor(None, _start_engine, supervisor)
        app.state.engine_start.add_done_callback(_log_engine_start_failure)
    else:
        logger.info("GraphHopper autostart disabled")

    if settings.gtfs.GTFS_AUTO_SYNC:
        await scheduler.start()
    else:
        logger.info("GTFS auto sync disabled")

    yield

    await scheduler.stop()
    await asyncio.get_event_loop().run_in_executor(None, supervisor.stop)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    # Settings validation is done automatically in core/config.py on import
    setup_logging()

    app = FastAPI(
        title="Wayfind API",
        description="Transit feed sync and multi-modal routing for Santiago",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.routing_container = RoutingContainer()
    app.state.gtfs_container = GTFSContainer()

    # CORS middleware - Public API, no credentials needed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Register routers
    from adapters.http.api.gtfs.routers import feed_router
    from adapters.http.api.routing.routers import route_router
    app.include_router(feed_router, prefix="/api/v1")
    app.include_router(route_router, prefix="/api/v1")

    @app.get("/health")
    @limiter.limit(RateLimits.HEALTH)
    async def health_check(request: Request):
        """Health check endpoint.

        The API is healthy even when the routing engine is not: routes then
        degrade to the straight-line fallback, which the engine status makes
        visible.
        """
        supervisor = request.app.state.routing_container.supervisor()
        scheduler = request.app.state.gtfs_container.sync_scheduler()
        return {
            "status": "healthy",
            "routing_engine": supervisor.status,
            "gtfs_sync": {
                "running": scheduler.is_running,
                "syncing": scheduler.is_syncing,
            },
        }

    @app.post("/admin/gtfs/sync")
    @limiter.limit(RateLimits.ADMIN_SYNC)
    def sync_gtfs(
        request: Request,
        x_admin_token: str = Header(None, alias="X-Admin-Token")
    ):
        """Download the GTFS feed and replace the stored dataset now.

        Runs in the request's worker thread and returns the sync summary.
        Answers 409 if another sync is in progress and 502 if the sync fails;
        in both cases the previous feed stays active.

        Requires X-Admin-Token header for authentication.
        """
        # Verify admin token (using constant-time comparison to prevent timing attacks)
        if not x_admin_token or not settings.ADMIN_TOKEN:
            raise HTTPException(status_code=401, detail="Unauthorized: Missing admin token")
        if not hmac.compare_digest(settings.ADMIN_TOKEN, x_admin_token):
            raise HTTPException(status_code=401, detail="Unauthorized: Invalid admin token")

        scheduler = request.app.state.gtfs_container.sync_scheduler()
        try:
            summary = scheduler.trigger_sync()
        except SyncAlreadyRunningError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except FeedSyncError as e:
            raise HTTPException(status_code=502, detail=f"GTFS sync failed: {e}")

        return {
            "status": "synced",
            "summary": summary.to_dict(),
        }

    return app


app = create_app()
