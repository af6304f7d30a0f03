"""HTTP client for the GraphHopper routing engine.

Builds /route queries for the foot, car and pt profiles and decodes the
answer. Zero solutions is a valid answer (``RouteResponse.no_route_found``);
transport failures, timeouts, non-2xx statuses and undecodable payloads
raise RouteQueryError.
Nothing is retried here.
"""
import dataclasses
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

import httpx

from core.config import settings
from src.routing_bc.domain.entities.route_query import (
    DEFAULT_DETAILS,
    Profile,
    PtOptions,
    RouteQuery,
)
from src.routing_bc.domain.entities.route_response import RouteResponse
from src.routing_bc.domain.exceptions import RouteQueryError
from src.routing_bc.domain.value_objects.geo import GeoPoint

logger = logging.getLogger(__name__)

PointLike = Union[GeoPoint, Tuple[float, float]]

HEALTH_TIMEOUT = 5.0
# Default departure for transit queries when the caller gives none
DEPARTURE_LEAD = timedelta(minutes=2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_geo_point(point: PointLike) -> GeoPoint:
    if isinstance(point, GeoPoint):
        return point
    lat, lon = point
    return GeoPoint(float(lat), float(lon))


class GraphHopperClient:
    """Synchronous client for a GraphHopper server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        pt_timeout: Optional[float] = None,
        locale: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        gh = settings.graphhopper
        self.base_url = (base_url or gh.GRAPHHOPPER_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else gh.GRAPHHOPPER_FOOT_TIMEOUT
        self.pt_timeout = pt_timeout if pt_timeout is not None else gh.GRAPHHOPPER_PT_TIMEOUT
        self.locale = locale or gh.GRAPHHOPPER_LOCALE
        self._transport = transport
        self._clock = clock

    def _client(self, timeout: float) -> httpx.Client:
        kwargs = {"timeout": timeout, "follow_redirects": True}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def build_request(
        self,
        points: Sequence[PointLike],
        profile: Union[Profile, str],
        pt_options: Optional[PtOptions] = None,
        details: Optional[Iterable[str]] = None,
    ) -> RouteQuery:
        """Build a RouteQuery.

        Raises ValueError for an unknown profile, fewer than two points or
        invalid coordinates.
        """
        try:
            profile = Profile(profile)
        except ValueError:
            raise ValueError(f"Unknown routing profile '{profile}', expected foot, car or pt")

        geo_points = [to_geo_point(p) for p in points]
        if len(geo_points) < 2:
            raise ValueError("A route needs at least two points")

        if profile == Profile.PT:
            pt = pt_options or PtOptions()
            if pt.earliest_departure is None:
                pt = dataclasses.replace(pt, earliest_departure=self._clock() + DEPARTURE_LEAD)
            return RouteQuery(
                points=geo_points,
                profile=profile,
                locale=self.locale,
                details=list(details or []),
                pt=pt,
            )

        return RouteQuery(
            points=geo_points,
            profile=profile,
            locale=self.locale,
            details=list(details) if details is not None else list(DEFAULT_DETAILS),
        )

    def execute(self, query: RouteQuery, timeout: Optional[float] = None) -> RouteResponse:
        """Send ``query`` to the engine."""
        if timeout is None:
            timeout = self.pt_timeout if query.profile == Profile.PT else self.timeout

        url = f"{self.base_url}/route"
        try:
            with self._client(timeout) as client:
                response = client.get(url, params=query.to_params())
        except httpx.TimeoutException as e:
            raise RouteQueryError(f"Engine request timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise RouteQueryError(f"Engine request failed: {e}") from e

        if not response.is_success:
            body = response.text
            raise RouteQueryError(
                f"Engine error {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RouteQueryError(f"Engine returned invalid JSON: {e}", status_code=response.status_code) from e
        if not isinstance(data, dict):
            raise RouteQueryError("Engine returned an unexpected payload", status_code=response.status_code)

        try:
            result = RouteResponse.from_dict(data)
        except (TypeError, ValueError, AttributeError, LookupError) as e:
            raise RouteQueryError(
                f"Engine returned an undecodable payload: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
        if result.no_route_found:
            logger.info(f"Engine found no {query.profile.value} route")
        return result

    def health(self, timeout: float = HEALTH_TIMEOUT) -> bool:
        """True when GET /health answers 200."""
        try:
            with self._client(timeout) as client:
                response = client.get(f"{self.base_url}/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def get_foot_route(self, origin: PointLike, destination: PointLike) -> RouteResponse:
        return self.execute(self.build_request([origin, destination], Profile.FOOT))

    def get_car_route(self, origin: PointLike, destination: PointLike) -> RouteResponse:
        return self.execute(self.build_request([origin, destination], Profile.CAR))

    def get_public_transit_route(
        self,
        origin: PointLike,
        destination: PointLike,
        departure: Optional[datetime] = None,
        max_walk_distance: Optional[int] = None,
        arrive_by: bool = False,
        limit_solutions: Optional[int] = None,
    ) -> RouteResponse:
        pt = PtOptions(earliest_departure=departure, arrive_by=arrive_by)
        if max_walk_distance:
            pt.max_walk_distance_per_leg = max_walk_distance
        if limit_solutions:
            pt.limit_solutions = limit_solutions
        return self.execute(self.build_request([origin, destination], Profile.PT, pt))
