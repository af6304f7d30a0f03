"""Per-row parsers for GTFS tables.

Every parser takes a ``Record`` and returns a ``RowResult``: either the
insert parameters for the row, or the reason it was skipped. Parsers never
raise for bad data, so one malformed line cannot abort a table import.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple


@dataclass(frozen=True)
class RowResult:
    """Outcome of parsing a single CSV record."""

    params: Optional[dict] = None
    key: Optional[Tuple] = None
    reason: Optional[str] = None

    @classmethod
    def accept(cls, params: dict, key: Tuple) -> "RowResult":
        return cls(params=params, key=key)

    @classmethod
    def skip(cls, reason: str) -> "RowResult":
        return cls(reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.reason is None


def header_index(header: Sequence[str]) -> Dict[str, int]:
    """Map lowercased, trimmed column names to their positions."""
    index = {}
    for i, name in enumerate(header):
        index[name.replace("\ufeff", "").strip().lower()] = i
    return index


class Record:
    """A CSV row addressed by column name."""

    __slots__ = ("values", "index", "line")

    def __init__(self, values: Sequence[str], index: Dict[str, int], line: int):
        self.values = values
        self.index = index
        self.line = line

    def get(self, key: str) -> str:
        """Trimmed field value, or "" when the column or cell is missing."""
        pos = self.index.get(key)
        if pos is None or pos >= len(self.values):
            return ""
        return self.values[pos].strip()


@dataclass
class ParseContext:
    """Ids imported so far in the current sync, for reference checks."""

    feed_id: Optional[int] = None
    stop_ids: Set[str] = field(default_factory=set)
    route_ids: Set[str] = field(default_factory=set)
    trip_ids: Set[str] = field(default_factory=set)


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def _parse_float(value: str) -> Optional[float]:
    try:
        parsed = float(value)
    except ValueError:
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def _parse_date(value: str) -> Optional[date]:
    """Parse a GTFS YYYYMMDD date."""
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        return None


def time_to_seconds(time_str: str) -> Optional[int]:
    """Convert HH:MM:SS (hours may exceed 23) to seconds since midnight."""
    parts = time_str.split(":")
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = int(parts[0]), int(parts[1]), int(parts[2])
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


def _missing(record: Record, *columns: str) -> Optional[str]:
    empty = [c for c in columns if not record.get(c)]
    if empty:
        return f"missing {', '.join(empty)}"
    return None


def _coordinate(record: Record, lat_col: str, lon_col: str):
    """Return ((lat, lon), None) or (None, reason)."""
    lat_str, lon_str = record.get(lat_col), record.get(lon_col)
    lat = _parse_float(lat_str)
    if lat is None:
        return None, f"invalid latitude '{lat_str}'"
    lon = _parse_float(lon_str)
    if lon is None:
        return None, f"invalid longitude '{lon_str}'"
    if not -90.0 <= lat <= 90.0:
        return None, f"latitude {lat} out of range"
    if not -180.0 <= lon <= 180.0:
        return None, f"longitude {lon} out of range"
    return (lat, lon), None


def parse_agency(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "agency_name", "agency_url", "agency_timezone")
    if reason:
        return RowResult.skip(reason)

    # agency_id is optional for single-agency feeds
    agency_id = record.get("agency_id") or record.get("agency_name")
    return RowResult.accept(
        {
            "id": agency_id,
            "feed_id": ctx.feed_id,
            "name": record.get("agency_name"),
            "url": record.get("agency_url"),
            "timezone": record.get("agency_timezone"),
            "lang": record.get("agency_lang") or None,
            "phone": record.get("agency_phone") or None,
        },
        key=(agency_id,),
    )


def parse_stop(record: Record, ctx: ParseContext) -> RowResult:
    stop_id = record.get("stop_id")
    if not stop_id:
        return RowResult.skip("missing stop_id")

    coords, reason = _coordinate(record, "stop_lat", "stop_lon")
    if reason:
        return RowResult.skip(f"{reason} for stop {stop_id}")

    return RowResult.accept(
        {
            "id": stop_id,
            "feed_id": ctx.feed_id,
            "name": record.get("stop_name"),
            "lat": coords[0],
            "lon": coords[1],
            "code": record.get("stop_code") or None,
            "description": record.get("stop_desc") or None,
            "zone_id": record.get("zone_id") or None,
            "location_type": _parse_int(record.get("location_type")) or 0,
            "parent_station_id": record.get("parent_station") or None,
            "wheelchair_boarding": _parse_int(record.get("wheelchair_boarding")) or 0,
        },
        key=(stop_id,),
    )


def parse_route(record: Record, ctx: ParseContext) -> RowResult:
    route_id = record.get("route_id")
    if not route_id:
        return RowResult.skip("missing route_id")

    route_type = 0
    raw_type = record.get("route_type")
    if raw_type:
        route_type = _parse_int(raw_type)
        if route_type is None:
            return RowResult.skip(f"invalid route_type '{raw_type}' for route {route_id}")

    return RowResult.accept(
        {
            "id": route_id,
            "feed_id": ctx.feed_id,
            "agency_id": record.get("agency_id") or None,
            "short_name": record.get("route_short_name"),
            "long_name": record.get("route_long_name"),
            "route_type": route_type,
            "color": record.get("route_color")[:6] or None,
            "text_color": record.get("route_text_color")[:6] or None,
        },
        key=(route_id,),
    )


def parse_shape(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence")
    if reason:
        return RowResult.skip(reason)

    shape_id = record.get("shape_id")
    coords, reason = _coordinate(record, "shape_pt_lat", "shape_pt_lon")
    if reason:
        return RowResult.skip(f"{reason} for shape {shape_id}")

    sequence = _parse_int(record.get("shape_pt_sequence"))
    if sequence is None:
        return RowResult.skip(f"invalid shape_pt_sequence for shape {shape_id}")

    return RowResult.accept(
        {
            "shape_id": shape_id,
            "sequence": sequence,
            "lat": coords[0],
            "lon": coords[1],
            "dist_traveled": _parse_float(record.get("shape_dist_traveled")),
            "feed_id": ctx.feed_id,
        },
        key=(shape_id, sequence),
    )


def parse_trip(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "trip_id", "route_id")
    if reason:
        return RowResult.skip(reason)

    trip_id, route_id = record.get("trip_id"), record.get("route_id")
    if route_id not in ctx.route_ids:
        return RowResult.skip(f"trip {trip_id} references unknown route {route_id}")

    return RowResult.accept(
        {
            "id": trip_id,
            "feed_id": ctx.feed_id,
            "route_id": route_id,
            "service_id": record.get("service_id"),
            "headsign": record.get("trip_headsign") or None,
            "direction_id": _parse_int(record.get("direction_id")) or 0,
            "shape_id": record.get("shape_id") or None,
        },
        key=(trip_id,),
    )


def parse_stop_time(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "trip_id", "stop_id", "stop_sequence")
    if reason:
        return RowResult.skip(reason)

    trip_id, stop_id = record.get("trip_id"), record.get("stop_id")
    sequence = _parse_int(record.get("stop_sequence"))
    if sequence is None:
        return RowResult.skip(f"invalid stop_sequence '{record.get('stop_sequence')}' for trip {trip_id}")
    if trip_id not in ctx.trip_ids:
        return RowResult.skip(f"stop_time references unknown trip {trip_id}")
    if stop_id not in ctx.stop_ids:
        return RowResult.skip(f"stop_time references unknown stop {stop_id}")

    arrival = record.get("arrival_time")
    departure = record.get("departure_time")
    return RowResult.accept(
        {
            "trip_id": trip_id,
            "stop_sequence": sequence,
            "stop_id": stop_id,
            "feed_id": ctx.feed_id,
            "arrival_time": arrival or None,
            "departure_time": departure or None,
            "arrival_seconds": time_to_seconds(arrival) if arrival else None,
            "departure_seconds": time_to_seconds(departure) if departure else None,
            "shape_dist_traveled": _parse_float(record.get("shape_dist_traveled")),
        },
        key=(trip_id, sequence),
    )


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def parse_calendar(record: Record, ctx: ParseContext) -> RowResult:
    service_id = record.get("service_id")
    if not service_id:
        return RowResult.skip("missing service_id")

    start_date = _parse_date(record.get("start_date"))
    end_date = _parse_date(record.get("end_date"))
    if start_date is None or end_date is None:
        return RowResult.skip(f"invalid start_date/end_date for service {service_id}")

    params = {day: record.get(day) == "1" for day in WEEKDAYS}
    params.update(
        service_id=service_id,
        feed_id=ctx.feed_id,
        start_date=start_date,
        end_date=end_date,
    )
    return RowResult.accept(params, key=(service_id,))


def parse_calendar_date(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "service_id", "date", "exception_type")
    if reason:
        return RowResult.skip(reason)

    service_id = record.get("service_id")
    service_date = _parse_date(record.get("date"))
    if service_date is None:
        return RowResult.skip(f"invalid date '{record.get('date')}' for service {service_id}")
    exception_type = _parse_int(record.get("exception_type"))
    if exception_type is None:
        return RowResult.skip(f"invalid exception_type for service {service_id}")

    return RowResult.accept(
        {
            "service_id": service_id,
            "date": service_date,
            "exception_type": exception_type,
            "feed_id": ctx.feed_id,
        },
        key=(service_id, service_date),
    )


def parse_transfer(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "from_stop_id", "to_stop_id")
    if reason:
        return RowResult.skip(reason)

    from_stop, to_stop = record.get("from_stop_id"), record.get("to_stop_id")
    for stop_id in (from_stop, to_stop):
        if stop_id not in ctx.stop_ids:
            return RowResult.skip(f"transfer references unknown stop {stop_id}")

    return RowResult.accept(
        {
            "from_stop_id": from_stop,
            "to_stop_id": to_stop,
            "transfer_type": _parse_int(record.get("transfer_type")) or 0,
            "min_transfer_time": _parse_int(record.get("min_transfer_time")),
            "feed_id": ctx.feed_id,
        },
        key=(from_stop, to_stop),
    )


def parse_frequency(record: Record, ctx: ParseContext) -> RowResult:
    reason = _missing(record, "trip_id", "start_time", "end_time", "headway_secs")
    if reason:
        return RowResult.skip(reason)

    trip_id = record.get("trip_id")
    if trip_id not in ctx.trip_ids:
        return RowResult.skip(f"frequency references unknown trip {trip_id}")
    headway = _parse_int(record.get("headway_secs"))
    if headway is None:
        return RowResult.skip(f"invalid headway_secs for trip {trip_id}")

    start_time = record.get("start_time")
    return RowResult.accept(
        {
            "trip_id": trip_id,
            "start_time": start_time,
            "end_time": record.get("end_time"),
            "headway_secs": headway,
            "exact_times": 1 if record.get("exact_times") == "1" else 0,
            "feed_id": ctx.feed_id,
        },
        key=(trip_id, start_time),
    )


@dataclass(frozen=True)
class TableSpec:
    """How one GTFS file maps onto one table."""

    name: str
    filename: str
    table: str
    columns: Tuple[str, ...]
    parser: Callable[[Record, ParseContext], RowResult]
    required: bool = False
    required_columns: Tuple[str, ...] = ()
    register: Optional[str] = None  # ParseContext set filled with accepted keys

    @property
    def insert_sql(self) -> str:
        cols = ", ".join(self.columns)
        values = ", ".join(f":{c}" for c in self.columns)
        return f"INSERT INTO {self.table} ({cols}) VALUES ({values})"


# Import order: parents before children
TABLE_SPECS: List[TableSpec] = [
    TableSpec(
        "agencies", "agency.txt", "gtfs_agencies",
        ("id", "feed_id", "name", "url", "timezone", "lang", "phone"),
        parse_agency,
    ),
    TableSpec(
        "stops", "stops.txt", "gtfs_stops",
        ("id", "feed_id", "name", "lat", "lon", "code", "description", "zone_id",
         "location_type", "parent_station_id", "wheelchair_boarding"),
        parse_stop,
        required=True,
        required_columns=("stop_id", "stop_name", "stop_lat", "stop_lon"),
        register="stop_ids",
    ),
    TableSpec(
        "routes", "routes.txt", "gtfs_routes",
        ("id", "feed_id", "agency_id", "short_name", "long_name", "route_type",
         "color", "text_color"),
        parse_route,
        required=True,
        required_columns=("route_id",),
        register="route_ids",
    ),
    TableSpec(
        "shapes", "shapes.txt", "gtfs_shapes",
        ("shape_id", "sequence", "lat", "lon", "dist_traveled", "feed_id"),
        parse_shape,
    ),
    TableSpec(
        "trips", "trips.txt", "gtfs_trips",
        ("id", "feed_id", "route_id", "service_id", "headsign", "direction_id", "shape_id"),
        parse_trip,
        required=True,
        required_columns=("trip_id", "route_id"),
        register="trip_ids",
    ),
    TableSpec(
        "stop_times", "stop_times.txt", "gtfs_stop_times",
        ("trip_id", "stop_sequence", "stop_id", "feed_id", "arrival_time",
         "departure_time", "arrival_seconds", "departure_seconds", "shape_dist_traveled"),
        parse_stop_time,
        required=True,
        required_columns=("trip_id", "stop_id", "stop_sequence"),
    ),
    TableSpec(
        "calendar", "calendar.txt", "gtfs_calendar",
        ("service_id", "feed_id") + WEEKDAYS + ("start_date", "end_date"),
        parse_calendar,
    ),
    TableSpec(
        "calendar_dates", "calendar_dates.txt", "gtfs_calendar_dates",
        ("service_id", "date", "exception_type", "feed_id"),
        parse_calendar_date,
    ),
    TableSpec(
        "transfers", "transfers.txt", "gtfs_transfers",
        ("from_stop_id", "to_stop_id", "transfer_type", "min_transfer_time", "feed_id"),
        parse_transfer,
    ),
    TableSpec(
        "frequencies", "frequencies.txt", "gtfs_frequencies",
        ("trip_id", "start_time", "end_time", "headway_secs", "exact_times", "feed_id"),
        parse_frequency,
    ),
]

REQUIRED_FILES = tuple(spec.filename for spec in TABLE_SPECS if spec.required)
