"""API schemas for routing endpoints."""

from .itinerary_schemas import (
    Coordinate,
    TransitRouteRequest,
    RoutePreferences,
    OptimalRouteRequest,
    RouteOptionsRequest,
    StepResponse,
    LegResponse,
    ItineraryResponse,
    WalkingDistanceResponse,
    AlternativesResponse,
    OptimalRouteResponse,
    RouteOptionResponse,
    RouteOptionsResponse,
)

__all__ = [
    "Coordinate",
    "TransitRouteRequest",
    "RoutePreferences",
    "OptimalRouteRequest",
    "RouteOptionsRequest",
    "StepResponse",
    "LegResponse",
    "ItineraryResponse",
    "WalkingDistanceResponse",
    "AlternativesResponse",
    "OptimalRouteResponse",
    "RouteOptionResponse",
    "RouteOptionsResponse",
]
