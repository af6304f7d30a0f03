import math
from dataclasses import dataclass
from math import radians, cos, sin, asin, sqrt, atan2, degrees
from typing import List, Tuple

# Earth's radius in meters
EARTH_RADIUS_M = 6_371_000


class CoordinateError(ValueError):
    """A latitude or longitude is not a finite, in-range number."""

    def __init__(self, field: str, message: str, value: float):
        self.field = field
        self.value = value
        super().__init__(f"{field}: {message} (value: {value})")


def validate_latitude(lat: float, field: str = "lat") -> None:
    if math.isnan(lat) or math.isinf(lat):
        raise CoordinateError(field, "latitude must be a finite number", lat)
    if not -90.0 <= lat <= 90.0:
        raise CoordinateError(field, "latitude must be between -90 and 90", lat)


def validate_longitude(lon: float, field: str = "lon") -> None:
    if math.isnan(lon) or math.isinf(lon):
        raise CoordinateError(field, "longitude must be a finite number", lon)
    if not -180.0 <= lon <= 180.0:
        raise CoordinateError(field, "longitude must be between -180 and 180", lon)


@dataclass(frozen=True)
class GeoPoint:
    """Geographic point with latitude and longitude.

    Construction validates the coordinates and raises CoordinateError.
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        validate_latitude(self.latitude, "latitude")
        validate_longitude(self.longitude, "longitude")

    def to_tuple(self) -> Tuple[float, float]:
        """Return as (lat, lon) tuple."""
        return (self.latitude, self.longitude)

    def to_lon_lat(self) -> List[float]:
        """Return as [lon, lat], the GeoJSON order."""
        return [self.longitude, self.latitude]

    def distance_to(self, other: "GeoPoint") -> float:
        """Calculate distance to another point in meters using Haversine formula."""
        return haversine_distance(
            self.latitude, self.longitude,
            other.latitude, other.longitude
        )

    def bearing_to(self, other: "GeoPoint") -> float:
        return bearing(self.latitude, self.longitude, other.latitude, other.longitude)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the distance between two points on Earth using the Haversine formula.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * asin(sqrt(a))

    return EARTH_RADIUS_M * c


def bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate initial bearing from point 1 to point 2.

    Returns:
        Bearing in degrees (0-360, where 0 is North)
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lon = radians(lon2 - lon1)

    x = sin(delta_lon) * cos(lat2_rad)
    y = cos(lat1_rad) * sin(lat2_rad) - sin(lat1_rad) * cos(lat2_rad) * cos(delta_lon)

    return (degrees(atan2(x, y)) + 360) % 360


def bounding_box(lat: float, lon: float, radius_m: float) -> Tuple[float, float, float, float]:
    """(min_lat, max_lat, min_lon, max_lon) enclosing a circle of ``radius_m``."""
    lat_delta = radius_m / 111_320.0
    lon_delta = radius_m / (111_320.0 * cos(radians(lat)))
    return lat - lat_delta, lat + lat_delta, lon - lon_delta, lon + lon_delta
