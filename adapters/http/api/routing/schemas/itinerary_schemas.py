"""Routing request and itinerary response schemas.

Every itinerary carries ``source`` and ``degraded``. A straight-line
fallback always has ``source="fallback"``, ``degraded=True`` and a
``reason``; engine itineraries never do.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from src.routing_bc.domain.entities.itinerary import Itinerary, ItineraryLeg, Step


class Coordinate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class TransitRouteRequest(BaseModel):
    """Body for POST /route/transit."""
    origin: Coordinate
    destination: Coordinate
    departure_time: Optional[datetime] = None  # default: now + 2 min
    arrive_by: bool = False
    max_walk_distance: Optional[int] = Field(None, gt=0, le=5000)
    max_alternatives: Optional[int] = Field(None, ge=1, le=10)


class RoutePreferences(BaseModel):
    minimize_transfers: bool = False
    minimize_walking: bool = False


class OptimalRouteRequest(BaseModel):
    """Body for POST /route/transit/optimal."""
    origin: Coordinate
    destination: Coordinate
    departure_time: Optional[datetime] = None
    preferences: RoutePreferences = RoutePreferences()


class RouteOptionsRequest(BaseModel):
    origin: Coordinate
    destination: Coordinate
    departure_time: Optional[datetime] = None


class StepResponse(BaseModel):
    text: str
    distance_meters: float
    duration_seconds: float
    sign: int
    street_name: str

    @classmethod
    def from_step(cls, step: Step) -> "StepResponse":
        return cls(
            text=step.text,
            distance_meters=round(step.distance_meters, 1),
            duration_seconds=round(step.duration_seconds, 1),
            sign=step.sign,
            street_name=step.street_name,
        )


class LegResponse(BaseModel):
    """One walk, drive or transit segment."""
    mode: str  # "walk", "car" or "transit"
    distance_meters: float
    duration_seconds: float
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    geometry: List[List[float]] = []  # [lon, lat]
    steps: List[StepResponse] = []

    # Transit only
    route_id: Optional[str] = None
    route_short_name: Optional[str] = None
    route_long_name: Optional[str] = None
    headsign: Optional[str] = None
    board_stop: Optional[str] = None
    alight_stop: Optional[str] = None
    num_stops: Optional[int] = None
    stop_names: List[str] = []

    @classmethod
    def from_leg(cls, leg: ItineraryLeg) -> "LegResponse":
        return cls(
            mode=leg.mode.value,
            distance_meters=round(leg.distance_meters, 1),
            duration_seconds=round(leg.duration_seconds, 1),
            departure_time=leg.departure_time,
            arrival_time=leg.arrival_time,
            geometry=leg.geometry,
            steps=[StepResponse.from_step(s) for s in leg.steps],
            route_id=leg.route_id,
            route_short_name=leg.route_short_name,
            route_long_name=leg.route_long_name,
            headsign=leg.headsign,
            board_stop=leg.board_stop,
            alight_stop=leg.alight_stop,
            num_stops=leg.num_stops,
            stop_names=leg.stop_names,
        )


class ItineraryResponse(BaseModel):
    profile: str
    distance_meters: float
    duration_seconds: float
    transfers: int
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    walk_distance_meters: float
    geometry: List[List[float]] = []
    legs: List[LegResponse]
    source: str  # "engine" or "fallback"
    degraded: bool
    reason: Optional[str] = None

    @classmethod
    def from_itinerary(cls, itinerary: Itinerary) -> "ItineraryResponse":
        return cls(
            profile=itinerary.profile,
            distance_meters=round(itinerary.distance_meters, 1),
            duration_seconds=round(itinerary.duration_seconds, 1),
            transfers=itinerary.transfers,
            departure_time=itinerary.departure_time,
            arrival_time=itinerary.arrival_time,
            walk_distance_meters=round(itinerary.walk_distance_meters, 1),
            geometry=itinerary.geometry,
            legs=[LegResponse.from_leg(leg) for leg in itinerary.legs],
            source=itinerary.source.value,
            degraded=itinerary.degraded,
            reason=itinerary.reason.value if itinerary.reason else None,
        )


class WalkingDistanceResponse(BaseModel):
    distance_meters: float
    duration_seconds: float
    duration_formatted: str
    walkable: bool
    source: str
    degraded: bool


class AlternativesResponse(BaseModel):
    alternatives: List[ItineraryResponse]
    count: int
    degraded: bool


class OptimalRouteResponse(BaseModel):
    route: ItineraryResponse
    alternatives_count: int
    optimal_reason: str


class RouteOptionResponse(BaseModel):
    type: str  # "walking" or "transit"
    distance_meters: float
    duration_seconds: float
    description: str
    transfers: int = 0
    routes: List[str] = []


class RouteOptionsResponse(BaseModel):
    options: List[RouteOptionResponse]
    origin: Coordinate
    destination: Coordinate
