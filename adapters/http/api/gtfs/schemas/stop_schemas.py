"""Stop-related response schemas."""

from typing import Optional
from pydantic import BaseModel


class StopResponse(BaseModel):
    id: str
    name: str
    lat: float
    lon: float
    code: Optional[str]
    description: Optional[str] = None
    location_type: int
    parent_station_id: Optional[str]
    wheelchair_boarding: int = 0

    class Config:
        from_attributes = True


class NearbyStopResponse(StopResponse):
    """Stop with its distance to the query point."""
    distance_meters: float
