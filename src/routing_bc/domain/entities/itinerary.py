from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ItinerarySource(str, Enum):
    """Where an itinerary came from."""
    ENGINE = "engine"
    FALLBACK = "fallback"


class FallbackReason(str, Enum):
    """Why a straight-line itinerary was produced instead of an engine route."""
    ENGINE_UNAVAILABLE = "engine_unavailable"
    ENGINE_ERROR = "engine_error"
    NO_ROUTE_FOUND = "no_route_found"


class LegMode(str, Enum):
    WALK = "walk"
    CAR = "car"
    TRANSIT = "transit"


@dataclass
class Step:
    """A single turn-by-turn instruction."""
    text: str
    distance_meters: float
    duration_seconds: float
    sign: int = 0
    street_name: str = ""


@dataclass
class ItineraryLeg:
    mode: LegMode
    distance_meters: float
    duration_seconds: float
    geometry: List[List[float]] = field(default_factory=list)  # [lon, lat]
    steps: List[Step] = field(default_factory=list)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None

    # Transit only
    route_id: Optional[str] = None
    route_short_name: Optional[str] = None
    route_long_name: Optional[str] = None
    headsign: Optional[str] = None
    board_stop: Optional[str] = None
    alight_stop: Optional[str] = None
    num_stops: Optional[int] = None
    stop_names: List[str] = field(default_factory=list)


@dataclass
class Itinerary:
    """Application-level route: ordered legs plus totals.

    ``degraded`` is True only for fallback itineraries, which are never
    produced from an engine answer.
    """
    profile: str
    legs: List[ItineraryLeg]
    distance_meters: float
    duration_seconds: float
    transfers: int = 0
    geometry: List[List[float]] = field(default_factory=list)
    source: ItinerarySource = ItinerarySource.ENGINE
    reason: Optional[FallbackReason] = None

    @property
    def degraded(self) -> bool:
        return self.source == ItinerarySource.FALLBACK

    @property
    def walk_distance_meters(self) -> float:
        return sum(leg.distance_meters for leg in self.legs if leg.mode == LegMode.WALK)

    @property
    def transit_legs(self) -> List[ItineraryLeg]:
        return [leg for leg in self.legs if leg.mode == LegMode.TRANSIT]

    @property
    def departure_time(self) -> Optional[datetime]:
        return self.legs[0].departure_time if self.legs else None

    @property
    def arrival_time(self) -> Optional[datetime]:
        return self.legs[-1].arrival_time if self.legs else None
