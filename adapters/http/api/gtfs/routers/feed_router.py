from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from core.database import get_db
from core.rate_limiter import limiter, RateLimits
from adapters.http.api.dependencies import get_sync_scheduler
from adapters.http.api.gtfs.schemas import (
    FeedResponse,
    NearbyStopResponse,
    StopResponse,
    SyncStatusResponse,
)
from src.gtfs_bc.feed.domain.entities.feed import FeedStatus
from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler
from src.gtfs_bc.stop.infrastructure.models import StopModel
from src.routing_bc.domain.value_objects.geo import bounding_box, haversine_distance

router = APIRouter(prefix="/gtfs", tags=["GTFS"])


@router.get("/feeds", response_model=List[FeedResponse])
@limiter.limit(RateLimits.FEEDS)
def list_feeds(
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Maximum results"),
    db: Session = Depends(get_db),
):
    """List committed feeds, newest first."""
    return (
        db.query(FeedModel)
        .filter(FeedModel.status == FeedStatus.COMPLETED.value)
        .order_by(FeedModel.downloaded_at.desc(), FeedModel.id.desc())
        .limit(limit)
        .all()
    )


@router.get("/feeds/latest", response_model=FeedResponse)
@limiter.limit(RateLimits.FEEDS)
def get_latest_feed(request: Request, db: Session = Depends(get_db)):
    """Get the active feed (the newest committed one)."""
    feed = (
        db.query(FeedModel)
        .filter(FeedModel.status == FeedStatus.COMPLETED.value)
        .order_by(FeedModel.downloaded_at.desc(), FeedModel.id.desc())
        .first()
    )
    if not feed:
        raise HTTPException(status_code=404, detail="No GTFS feed has been imported yet")
    return feed


@router.get("/sync/status", response_model=SyncStatusResponse)
def get_sync_status(scheduler: GTFSSyncScheduler = Depends(get_sync_scheduler)):
    """Get the feed sync scheduler status."""
    return scheduler.status


@router.get("/stops/nearby", response_model=List[NearbyStopResponse])
@limiter.limit(RateLimits.NEARBY_STOPS)
def get_nearby_stops(
    request: Request,
    lat: float = Query(..., ge=-90, le=90, description="Latitude (e.g., -33.45 for Santiago)"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude (e.g., -70.66 for Santiago)"),
    radius: float = Query(400, gt=0, le=2000, description="Search radius in meters"),
    limit: int = Query(20, ge=1, le=100, description="Maximum results"),
    db: Session = Depends(get_db),
):
    """Get stops within ``radius`` meters of the given point, ordered by distance.

    A bounding box narrows the candidates in SQL; the exact great-circle
    distance is applied afterwards.
    """
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius)
    candidates = (
        db.query(StopModel)
        .filter(
            StopModel.lat.between(min_lat, max_lat),
            StopModel.lon.between(min_lon, max_lon),
        )
        .all()
    )

    nearby = []
    for stop in candidates:
        distance = haversine_distance(lat, lon, stop.lat, stop.lon)
        if distance <= radius:
            nearby.append((distance, stop))
    nearby.sort(key=lambda item: item[0])

    return [
        NearbyStopResponse(
            **StopResponse.model_validate(stop).model_dump(),
            distance_meters=round(distance, 1),
        )
        for distance, stop in nearby[:limit]
    ]


@router.get("/stops/code/{code}", response_model=StopResponse)
@limiter.limit(RateLimits.STOPS)
def get_stop_by_code(request: Request, code: str, db: Session = Depends(get_db)):
    """Get a stop by its public code or id (case-insensitive)."""
    needle = code.strip().upper()
    stop = (
        db.query(StopModel)
        .filter(or_(func.upper(StopModel.code) == needle, func.upper(StopModel.id) == needle))
        .order_by(StopModel.id)
        .first()
    )
    if not stop:
        raise HTTPException(status_code=404, detail=f"Stop {code} not found")
    return stop
