"""Route endpoints backed by the routing engine.

Walking, driving and transit endpoints never fail because of the engine:
when it is down, errors out or finds nothing, they answer 200 with a
straight-line itinerary marked ``degraded``.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.rate_limiter import limiter, RateLimits
from adapters.http.api.dependencies import get_itinerary_service
from adapters.http.api.routing.schemas import (
    AlternativesResponse,
    ItineraryResponse,
    OptimalRouteRequest,
    OptimalRouteResponse,
    RouteOptionResponse,
    RouteOptionsRequest,
    RouteOptionsResponse,
    TransitRouteRequest,
    WalkingDistanceResponse,
)
from src.routing_bc.domain.entities.route_query import Profile, PtOptions
from src.routing_bc.infrastructure.services.itinerary_service import ItineraryService

router = APIRouter(prefix="/route", tags=["Routing"])

# Shorter walks for the single-answer transit endpoint
QUICK_MAX_WALK_DISTANCE = 800


def _pt_options(body: TransitRouteRequest, default_max_walk: int = None) -> PtOptions:
    pt = PtOptions(earliest_departure=body.departure_time, arrive_by=body.arrive_by)
    max_walk = body.max_walk_distance or default_max_walk
    if max_walk:
        pt.max_walk_distance_per_leg = max_walk
    if body.max_alternatives:
        pt.limit_solutions = body.max_alternatives
    return pt


@router.get("/walking", response_model=ItineraryResponse)
@limiter.limit(RateLimits.ROUTE)
def get_walking_route(
    request: Request,
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lon: float = Query(..., ge=-180, le=180),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lon: float = Query(..., ge=-180, le=180),
    service: ItineraryService = Depends(get_itinerary_service),
):
    """Walking route with turn-by-turn instructions."""
    itinerary = service.plan((origin_lat, origin_lon), (dest_lat, dest_lon), Profile.FOOT)
    return ItineraryResponse.from_itinerary(itinerary)


@router.get("/walking/distance", response_model=WalkingDistanceResponse)
@limiter.limit(RateLimits.ROUTE)
def get_walking_distance(
    request: Request,
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lon: float = Query(..., ge=-180, le=180),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lon: float = Query(..., ge=-180, le=180),
    service: ItineraryService = Depends(get_itinerary_service),
):
    """Walking distance and time only, without geometry."""
    result = service.walking_distance((origin_lat, origin_lon), (dest_lat, dest_lon))
    return WalkingDistanceResponse(
        distance_meters=round(result.distance_meters, 1),
        duration_seconds=round(result.duration_seconds, 1),
        duration_formatted=f"{result.duration_minutes} min",
        walkable=result.walkable,
        source=result.source.value,
        degraded=result.reason is not None,
    )


@router.get("/driving", response_model=ItineraryResponse)
@limiter.limit(RateLimits.ROUTE)
def get_driving_route(
    request: Request,
    origin_lat: float = Query(..., ge=-90, le=90),
    origin_lon: float = Query(..., ge=-180, le=180),
    dest_lat: float = Query(..., ge=-90, le=90),
    dest_lon: float = Query(..., ge=-180, le=180),
    service: ItineraryService = Depends(get_itinerary_service),
):
    """Driving route."""
    itinerary = service.plan((origin_lat, origin_lon), (dest_lat, dest_lon), Profile.CAR)
    return ItineraryResponse.from_itinerary(itinerary)


@router.post("/transit", response_model=AlternativesResponse)
@limiter.limit(RateLimits.TRANSIT_ROUTE)
def get_transit_routes(
    request: Request,
    body: TransitRouteRequest,
    service: ItineraryService = Depends(get_itinerary_service),
):
    """All public transit alternatives the engine offers.

    ``departure_time`` defaults to two minutes from now and
    ``max_walk_distance`` to 1000 m per walking leg.
    """
    itineraries = service.plan_alternatives(
        (body.origin.lat, body.origin.lon),
        (body.destination.lat, body.destination.lon),
        Profile.PT,
        _pt_options(body),
    )
    alternatives = [ItineraryResponse.from_itinerary(i) for i in itineraries]
    return AlternativesResponse(
        alternatives=alternatives,
        count=len(alternatives),
        degraded=any(i.degraded for i in itineraries),
    )


@router.post("/transit/quick", response_model=ItineraryResponse)
@limiter.limit(RateLimits.TRANSIT_ROUTE)
def get_quick_transit_route(
    request: Request,
    body: TransitRouteRequest,
    service: ItineraryService = Depends(get_itinerary_service),
):
    """First (fastest) public transit itinerary only."""
    itinerary = service.plan(
        (body.origin.lat, body.origin.lon),
        (body.destination.lat, body.destination.lon),
        Profile.PT,
        _pt_options(body, default_max_walk=QUICK_MAX_WALK_DISTANCE),
    )
    return ItineraryResponse.from_itinerary(itinerary)


@router.post("/transit/optimal", response_model=OptimalRouteResponse)
@limiter.limit(RateLimits.TRANSIT_ROUTE)
def get_optimal_transit_route(
    request: Request,
    body: OptimalRouteRequest,
    service: ItineraryService = Depends(get_itinerary_service),
):
    """Transit itinerary balancing travel time against transfers and walking."""
    choice = service.plan_optimal(
        (body.origin.lat, body.origin.lon),
        (body.destination.lat, body.destination.lon),
        departure=body.departure_time,
        minimize_transfers=body.preferences.minimize_transfers,
        minimize_walking=body.preferences.minimize_walking,
    )
    return OptimalRouteResponse(
        route=ItineraryResponse.from_itinerary(choice.itinerary),
        alternatives_count=choice.alternatives_count,
        optimal_reason=choice.reason,
    )


@router.post("/options", response_model=RouteOptionsResponse)
@limiter.limit(RateLimits.ROUTE_OPTIONS)
def get_route_options(
    request: Request,
    body: RouteOptionsRequest,
    service: ItineraryService = Depends(get_itinerary_service),
):
    """Lightweight summaries (no geometry) to present before loading a full route."""
    options = service.route_options(
        (body.origin.lat, body.origin.lon),
        (body.destination.lat, body.destination.lon),
        departure=body.departure_time,
    )
    if not options:
        raise HTTPException(status_code=404, detail="No routes found")

    return RouteOptionsResponse(
        options=[
            RouteOptionResponse(
                type=o.type,
                distance_meters=round(o.distance_meters, 1),
                duration_seconds=round(o.duration_seconds, 1),
                description=o.description,
                transfers=o.transfers,
                routes=o.routes,
            )
            for o in options
        ],
        origin=body.origin,
        destination=body.destination,
    )
