"""Engine /route response, decoded from JSON.

Only the fields the itinerary layer uses are kept. Leg and stop times come
back either as epoch milliseconds or as ISO 8601 strings depending on the
engine version; both decode to timezone-aware datetimes.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        if value <= 0:
            return None
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _coordinates(geometry: Optional[dict]) -> List[List[float]]:
    if not isinstance(geometry, dict):
        return []
    return [list(c[:2]) for c in geometry.get("coordinates") or []]


@dataclass
class Instruction:
    distance: float
    time_ms: int
    sign: int
    text: str
    street_name: str = ""
    heading: Optional[float] = None
    interval: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Instruction":
        return cls(
            distance=float(data.get("distance") or 0.0),
            time_ms=int(data.get("time") or 0),
            sign=int(data.get("sign") or 0),
            text=data.get("text") or "",
            street_name=data.get("street_name") or "",
            heading=data.get("heading"),
            interval=list(data.get("interval") or []),
        )


@dataclass
class LegStop:
    stop_id: str
    stop_name: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    arrival_time: Optional[datetime] = None
    departure_time: Optional[datetime] = None
    stop_sequence: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LegStop":
        lat, lon = data.get("lat"), data.get("lon")
        coords = _coordinates(data.get("geometry"))
        if lat is None and coords:
            lon, lat = coords[0][0], coords[0][1]
        return cls(
            stop_id=str(data.get("stop_id") or ""),
            stop_name=data.get("stop_name") or "",
            lat=lat,
            lon=lon,
            arrival_time=parse_timestamp(data.get("arrival_time")),
            departure_time=parse_timestamp(data.get("departure_time")),
            stop_sequence=data.get("stop_sequence"),
        )


@dataclass
class Leg:
    type: str  # "walk" or "pt"
    distance: float
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    geometry: List[List[float]] = field(default_factory=list)  # [lon, lat]
    instructions: List[Instruction] = field(default_factory=list)
    route_id: str = ""
    trip_id: str = ""
    route_short_name: str = ""
    route_long_name: str = ""
    headsign: str = ""
    stops: List[LegStop] = field(default_factory=list)
    num_stops: Optional[int] = None

    @property
    def is_transit(self) -> bool:
        return self.type == "pt"

    @property
    def duration_seconds(self) -> float:
        if self.departure_time and self.arrival_time:
            return max((self.arrival_time - self.departure_time).total_seconds(), 0.0)
        return sum(i.time_ms for i in self.instructions) / 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Leg":
        return cls(
            type=data.get("type") or "walk",
            distance=float(data.get("distance") or 0.0),
            departure_time=parse_timestamp(data.get("departure_time")),
            arrival_time=parse_timestamp(data.get("arrival_time")),
            geometry=_coordinates(data.get("geometry")),
            instructions=[Instruction.from_dict(i) for i in data.get("instructions") or []],
            route_id=data.get("route_id") or "",
            trip_id=data.get("trip_id") or "",
            route_short_name=data.get("route_short_name") or "",
            route_long_name=data.get("route_long_name") or "",
            headsign=data.get("trip_headsign") or data.get("headsign") or "",
            stops=[LegStop.from_dict(s) for s in data.get("stops") or []],
            num_stops=data.get("num_stops"),
        )


@dataclass
class Path:
    distance: float  # meters
    time_ms: int
    transfers: int = 0
    points: List[List[float]] = field(default_factory=list)  # [lon, lat]
    instructions: List[Instruction] = field(default_factory=list)
    legs: List[Leg] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return self.time_ms / 1000

    @property
    def walk_distance(self) -> float:
        return sum(leg.distance for leg in self.legs if not leg.is_transit)

    @property
    def transit_legs(self) -> List[Leg]:
        return [leg for leg in self.legs if leg.is_transit]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Path":
        return cls(
            distance=float(data.get("distance") or 0.0),
            time_ms=int(data.get("time") or 0),
            transfers=int(data.get("transfers") or 0),
            points=_coordinates(data.get("points")),
            instructions=[Instruction.from_dict(i) for i in data.get("instructions") or []],
            legs=[Leg.from_dict(leg) for leg in data.get("legs") or []],
        )


@dataclass
class RouteResponse:
    paths: List[Path] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)

    @property
    def no_route_found(self) -> bool:
        """The engine answered but had zero solutions."""
        return not self.paths

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteResponse":
        return cls(
            paths=[Path.from_dict(p) for p in data.get("paths") or []],
            info=data.get("info") or {},
        )
