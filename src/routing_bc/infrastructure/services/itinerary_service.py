"""Itinerary normalization and straight-line fallback.

Turns engine paths into the application's leg/step model. When the engine is
unhealthy, errors out or has no solution, a single straight-line leg is
returned instead, always tagged ``source="fallback"`` so it can never pass
for a real route.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

from src.routing_bc.domain.entities.itinerary import (
    FallbackReason,
    Itinerary,
    ItineraryLeg,
    ItinerarySource,
    LegMode,
    Step,
)
from src.routing_bc.domain.entities.route_query import Profile, PtOptions
from src.routing_bc.domain.entities.route_response import Instruction, Leg, Path, RouteResponse
from src.routing_bc.domain.exceptions import RouteQueryError
from src.routing_bc.infrastructure.services.engine_supervisor import EngineSupervisor
from src.routing_bc.infrastructure.services.graphhopper_client import (
    GraphHopperClient,
    PointLike,
    to_geo_point,
)

logger = logging.getLogger(__name__)

# Straight-line speeds used by the fallback, in m/s
FALLBACK_SPEEDS = {
    Profile.FOOT: 1.39,
    Profile.CAR: 11.1,
    Profile.PT: 5.5,
}

WALKABLE_DISTANCE_M = 2000
TRANSFER_PENALTY_S = 600
WALK_PENALTY_PER_M = 0.5
MAX_TRANSIT_OPTIONS = 3
OPTIMAL_MAX_WALK_DISTANCE = 1200

CARDINALS = ["norte", "noreste", "este", "sureste", "sur", "suroeste", "oeste", "noroeste"]


def cardinal_direction(degrees: float) -> str:
    return CARDINALS[int(((degrees % 360) + 22.5) // 45) % 8]


def optimal_reason(minimize_transfers: bool, minimize_walking: bool) -> str:
    if minimize_transfers and minimize_walking:
        return "fewest_transfers_and_walking"
    if minimize_transfers:
        return "fewest_transfers"
    if minimize_walking:
        return "least_walking"
    return "fastest"


@dataclass
class WalkingDistance:
    distance_meters: float
    duration_seconds: float
    walkable: bool
    source: ItinerarySource = ItinerarySource.ENGINE
    reason: Optional[FallbackReason] = None

    @property
    def duration_minutes(self) -> int:
        return int(self.duration_seconds // 60)


@dataclass
class OptimalChoice:
    itinerary: Itinerary
    alternatives_count: int
    reason: str


@dataclass
class RouteOption:
    """Lightweight summary of one way to make the trip, without geometry."""
    type: str  # "walking" or "transit"
    distance_meters: float
    duration_seconds: float
    description: str
    transfers: int = 0
    routes: List[str] = field(default_factory=list)


def _step(instruction: Instruction) -> Step:
    return Step(
        text=instruction.text,
        distance_meters=instruction.distance,
        duration_seconds=instruction.time_ms / 1000,
        sign=instruction.sign,
        street_name=instruction.street_name,
    )


class ItineraryService:
    """Plans routes through the engine and shapes them into itineraries."""

    def __init__(
        self,
        client: Optional[GraphHopperClient] = None,
        supervisor: Optional[EngineSupervisor] = None,
    ):
        self.client = client or (supervisor.client if supervisor else GraphHopperClient())
        self.supervisor = supervisor

    # Normalization

    def normalize(self, path: Path, profile: Union[Profile, str]) -> Itinerary:
        """Convert an engine path into an engine-sourced Itinerary."""
        profile = Profile(profile)

        if path.legs:
            legs = [self._normalize_leg(leg) for leg in path.legs]
        else:
            mode = LegMode.CAR if profile == Profile.CAR else LegMode.WALK
            legs = [
                ItineraryLeg(
                    mode=mode,
                    distance_meters=path.distance,
                    duration_seconds=path.duration_seconds,
                    geometry=path.points,
                    steps=[_step(i) for i in path.instructions],
                )
            ]

        return Itinerary(
            profile=profile.value,
            legs=legs,
            distance_meters=path.distance,
            duration_seconds=path.duration_seconds,
            transfers=path.transfers,
            geometry=path.points,
            source=ItinerarySource.ENGINE,
        )

    def _normalize_leg(self, leg: Leg) -> ItineraryLeg:
        if not leg.is_transit:
            return ItineraryLeg(
                mode=LegMode.WALK,
                distance_meters=leg.distance,
                duration_seconds=leg.duration_seconds,
                geometry=leg.geometry,
                steps=[_step(i) for i in leg.instructions],
                departure_time=leg.departure_time,
                arrival_time=leg.arrival_time,
            )

        stop_names = [s.stop_name for s in leg.stops]
        num_stops = leg.num_stops
        if num_stops is None:
            # Boarding stop excluded
            num_stops = max(len(leg.stops) - 1, 0)

        return ItineraryLeg(
            mode=LegMode.TRANSIT,
            distance_meters=leg.distance,
            duration_seconds=leg.duration_seconds,
            geometry=leg.geometry,
            departure_time=leg.departure_time,
            arrival_time=leg.arrival_time,
            route_id=leg.route_id or None,
            route_short_name=leg.route_short_name or None,
            route_long_name=leg.route_long_name or None,
            headsign=leg.headsign or None,
            board_stop=stop_names[0] if stop_names else None,
            alight_stop=stop_names[-1] if stop_names else None,
            num_stops=num_stops,
            stop_names=stop_names,
        )

    # Fallback

    def fallback(
        self,
        origin: PointLike,
        destination: PointLike,
        profile: Union[Profile, str],
        reason: FallbackReason,
    ) -> Itinerary:
        """Single straight-line leg between the two points, marked degraded."""
        profile = Profile(profile)
        start, end = to_geo_point(origin), to_geo_point(destination)
        distance = start.distance_to(end)
        duration = distance / FALLBACK_SPEEDS[profile]
        direction = cardinal_direction(start.bearing_to(end))
        geometry = [start.to_lon_lat(), end.to_lon_lat()]

        mode = {Profile.FOOT: LegMode.WALK, Profile.CAR: LegMode.CAR, Profile.PT: LegMode.TRANSIT}[profile]
        leg = ItineraryLeg(
            mode=mode,
            distance_meters=distance,
            duration_seconds=duration,
            geometry=geometry,
            steps=[
                Step(
                    text=f"Dirígete hacia el {direction} ({distance:.0f} m en línea recta)",
                    distance_meters=distance,
                    duration_seconds=duration,
                ),
                Step(text="Llegada al destino", distance_meters=0.0, duration_seconds=0.0, sign=4),
            ],
        )

        logger.warning(
            f"Using straight-line fallback for {profile.value} route ({reason.value}): {distance:.0f} m"
        )
        return Itinerary(
            profile=profile.value,
            legs=[leg],
            distance_meters=distance,
            duration_seconds=duration,
            geometry=geometry,
            source=ItinerarySource.FALLBACK,
            reason=reason,
        )

    # Planning

    def _query(
        self,
        origin: PointLike,
        destination: PointLike,
        profile: Profile,
        pt_options: Optional[PtOptions] = None,
    ) -> Tuple[Optional[RouteResponse], Optional[FallbackReason]]:
        """Ask the engine. Returns the response, or the reason to fall back."""
        if self.supervisor is not None and not self.supervisor.ensure_running():
            logger.warning("Routing engine not healthy, skipping query")
            return None, FallbackReason.ENGINE_UNAVAILABLE

        query = self.client.build_request([origin, destination], profile, pt_options)
        try:
            response = self.client.execute(query)
        except RouteQueryError as e:
            logger.error(f"Routing engine query failed: {e}")
            if e.status_code is None and self.supervisor is not None:
                # Transport failure: refresh the recorded engine state
                self.supervisor.health_check()
            return None, FallbackReason.ENGINE_ERROR

        if response.no_route_found:
            return response, FallbackReason.NO_ROUTE_FOUND
        return response, None

    def plan(
        self,
        origin: PointLike,
        destination: PointLike,
        profile: Union[Profile, str],
        pt_options: Optional[PtOptions] = None,
    ) -> Itinerary:
        """Best engine itinerary, or the fallback when the engine cannot answer.

        Raises ValueError for an unknown profile or invalid coordinates.
        """
        profile = Profile(profile)
        response, reason = self._query(origin, destination, profile, pt_options)
        if reason is not None:
            return self.fallback(origin, destination, profile, reason)
        return self.normalize(response.paths[0], profile)

    def plan_alternatives(
        self,
        origin: PointLike,
        destination: PointLike,
        profile: Union[Profile, str] = Profile.PT,
        pt_options: Optional[PtOptions] = None,
    ) -> List[Itinerary]:
        """Every path the engine returned, or a one-element fallback list."""
        profile = Profile(profile)
        response, reason = self._query(origin, destination, profile, pt_options)
        if reason is not None:
            return [self.fallback(origin, destination, profile, reason)]
        return [self.normalize(path, profile) for path in response.paths]

    @staticmethod
    def choose_optimal(paths: List[Path], minimize_transfers: bool = False, minimize_walking: bool = False) -> int:
        """Index of the lowest-scoring path.

        The score is the travel time in seconds, plus 600 s per transfer
        and 0.5 per metre walked when the matching preference is set. Ties
        keep the earlier path.
        """
        if not paths:
            raise ValueError("No paths to choose from")

        best_index, best_score = 0, None
        for index, path in enumerate(paths):
            score = path.duration_seconds
            if minimize_transfers:
                score += path.transfers * TRANSFER_PENALTY_S
            if minimize_walking:
                score += path.walk_distance * WALK_PENALTY_PER_M
            if best_score is None or score < best_score:
                best_index, best_score = index, score
        return best_index

    def plan_optimal(
        self,
        origin: PointLike,
        destination: PointLike,
        departure: Optional[datetime] = None,
        minimize_transfers: bool = False,
        minimize_walking: bool = False,
    ) -> OptimalChoice:
        """Transit itinerary balancing time, transfers and walking."""
        pt = PtOptions(earliest_departure=departure, max_walk_distance_per_leg=OPTIMAL_MAX_WALK_DISTANCE)
        response, reason = self._query(origin, destination, Profile.PT, pt)
        if reason is not None:
            return OptimalChoice(
                itinerary=self.fallback(origin, destination, Profile.PT, reason),
                alternatives_count=0,
                reason=reason.value,
            )

        index = self.choose_optimal(response.paths, minimize_transfers, minimize_walking)
        return OptimalChoice(
            itinerary=self.normalize(response.paths[index], Profile.PT),
            alternatives_count=len(response.paths),
            reason=optimal_reason(minimize_transfers, minimize_walking),
        )

    def walking_distance(self, origin: PointLike, destination: PointLike) -> WalkingDistance:
        """Distance and time on foot, without geometry."""
        itinerary = self.plan(origin, destination, Profile.FOOT)
        return WalkingDistance(
            distance_meters=itinerary.distance_meters,
            duration_seconds=itinerary.duration_seconds,
            walkable=itinerary.distance_meters < WALKABLE_DISTANCE_M,
            source=itinerary.source,
            reason=itinerary.reason,
        )

    def route_options(
        self,
        origin: PointLike,
        destination: PointLike,
        departure: Optional[datetime] = None,
    ) -> List[RouteOption]:
        """Walking (when under 2 km) and up to three transit summaries.

        Only engine answers produce options; an empty list means the engine
        had nothing to offer.
        """
        options: List[RouteOption] = []

        foot, reason = self._query(origin, destination, Profile.FOOT)
        if reason is None:
            path = foot.paths[0]
            if path.distance < WALKABLE_DISTANCE_M:
                options.append(RouteOption(
                    type="walking",
                    distance_meters=path.distance,
                    duration_seconds=path.duration_seconds,
                    description=f"Caminar {path.distance / 1000:.1f} km",
                ))

        transit, reason = self._query(origin, destination, Profile.PT, PtOptions(earliest_departure=departure))
        if reason is None:
            for path in transit.paths[:MAX_TRANSIT_OPTIONS]:
                routes = [leg.route_short_name for leg in path.transit_legs if leg.route_short_name]
                minutes = int(path.duration_seconds // 60)
                description = f"{minutes} min"
                if routes:
                    description = f"Bus {' + '.join(routes)} - {minutes} min"
                options.append(RouteOption(
                    type="transit",
                    distance_meters=path.distance,
                    duration_seconds=path.duration_seconds,
                    description=description,
                    transfers=path.transfers,
                    routes=routes,
                ))

        return options
