from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from src.routing_bc.domain.value_objects.geo import GeoPoint


class Profile(str, Enum):
    """Routing profiles configured in the engine."""
    FOOT = "foot"
    CAR = "car"
    PT = "pt"


DEFAULT_DETAILS = ["street_name", "time", "distance"]
DEFAULT_MAX_WALK_DISTANCE = 1000  # meters per leg
DEFAULT_LIMIT_SOLUTIONS = 5


def format_rfc3339(moment: datetime) -> str:
    """Format as RFC3339 in UTC; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class PtOptions:
    """Public transit parameters."""
    earliest_departure: Optional[datetime] = None
    arrive_by: bool = False
    max_walk_distance_per_leg: int = DEFAULT_MAX_WALK_DISTANCE
    limit_solutions: int = DEFAULT_LIMIT_SOLUTIONS


@dataclass
class RouteQuery:
    """A route request for the engine's /route endpoint."""

    points: List[GeoPoint]
    profile: Profile
    locale: str = "es"
    points_encoded: bool = False
    instructions: bool = True
    details: List[str] = field(default_factory=list)
    pt: Optional[PtOptions] = None

    def to_params(self) -> List[Tuple[str, str]]:
        """Query string pairs; ``point`` and ``details`` repeat."""
        params = [("point", f"{p.latitude:f},{p.longitude:f}") for p in self.points]
        params += [
            ("profile", self.profile.value),
            ("locale", self.locale),
            ("points_encoded", str(self.points_encoded).lower()),
            ("instructions", str(self.instructions).lower()),
        ]
        params += [("details", d) for d in self.details]

        if self.pt is not None:
            if self.pt.earliest_departure is not None:
                params.append(("pt.earliest_departure_time", format_rfc3339(self.pt.earliest_departure)))
            if self.pt.arrive_by:
                params.append(("pt.arrive_by", "true"))
            if self.pt.max_walk_distance_per_leg > 0:
                params.append(("pt.max_walk_distance_per_leg", str(self.pt.max_walk_distance_per_leg)))
            if self.pt.limit_solutions > 0:
                params.append(("pt.limit_solutions", str(self.pt.limit_solutions)))

        return params
