"""API tests with the engine and feed server replaced by mock transports.

The database is an in-memory SQLite; no external service is needed.
"""

import asyncio
import logging

import httpx
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from app import _log_engine_start_failure, create_app
from conftest import (
    FALLBACK_URL,
    FEED_URL,
    FOOT_RESPONSE,
    PT_RESPONSE,
    damaged_feed_zip,
    engine_transport,
    feed_server,
)
from core.database import get_db
from core.rate_limiter import limiter
from src.gtfs_bc.feed.infrastructure.services.feed_downloader import FeedDownloader
from src.gtfs_bc.feed.infrastructure.services.feed_loader import GTFSFeedLoader
from src.gtfs_bc.feed.infrastructure.services.feed_sync_scheduler import GTFSSyncScheduler
from src.routing_bc.infrastructure.services.engine_supervisor import EngineSupervisor
from src.routing_bc.infrastructure.services.graphhopper_client import GraphHopperClient
from src.routing_bc.infrastructure.services.itinerary_service import ItineraryService

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}
ROUTE_QUERY = "origin_lat=-33.45&origin_lon=-70.66&dest_lat=-33.52&dest_lon=-70.68"
TRANSIT_BODY = {
    "origin": {"lat": -33.45, "lon": -70.66},
    "destination": {"lat": -33.52, "lon": -70.68},
}


def routing_engine(route_transport):
    """Client and itinerary service talking to a mock engine."""
    client = GraphHopperClient(base_url="http://graphhopper.test:8989", transport=route_transport)
    return client, ItineraryService(client=client)


@pytest.fixture
def feed_responses(sample_feed_zip):
    return {FEED_URL: (200, sample_feed_zip)}


@pytest.fixture
def make_api(session_factory, feed_responses):
    """Build a test client; ``route_transport`` answers engine queries."""
    limiter.enabled = False
    clients = []

    def build(route_transport=None):
        app = create_app()

        def override_get_db():
            db = session_factory()
            try:
                yield db
                db.commit()
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db

        client, service = routing_engine(route_transport or engine_transport(route_body=FOOT_RESPONSE))
        supervisor = EngineSupervisor(client=client, jar_paths=[])
        app.state.routing_container.supervisor.override(providers.Object(supervisor))
        app.state.routing_container.itinerary_service.override(providers.Object(service))

        def loader_factory():
            downloader = FeedDownloader(FEED_URL, FALLBACK_URL, transport=feed_server(feed_responses))
            return GTFSFeedLoader(FEED_URL, FALLBACK_URL, downloader=downloader)

        scheduler = GTFSSyncScheduler(loader_factory=loader_factory, session_factory=session_factory)
        app.state.gtfs_container.sync_scheduler.override(providers.Object(scheduler))

        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield build

    for test_client in clients:
        test_client.__exit__(None, None, None)
    limiter.enabled = True


@pytest.fixture
def api(make_api):
    return make_api()


@pytest.fixture
def synced_api(api):
    response = api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    return api


class TestHealthEndpoint:
    """Tests for /health."""

    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["routing_engine"]["state"] == "not_started"
        assert data["routing_engine"]["base_url"] == "http://graphhopper.test:8989"
        assert data["gtfs_sync"] == {"running": False, "syncing": False}


class TestAdminSync:
    """Tests for POST /admin/gtfs/sync."""

    def test_missing_token(self, api):
        assert api.post("/admin/gtfs/sync").status_code == 401

    def test_wrong_token(self, api):
        response = api.post("/admin/gtfs/sync", headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_sync(self, api):
        response = api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "synced"
        assert data["summary"]["counts"]["stops"] == 2
        assert data["summary"]["counts"]["stop_times"] == 4
        assert data["summary"]["skipped"] == 1
        assert data["summary"]["feed_version"] == "2025-10-01"

    def test_sync_in_progress(self, api):
        scheduler = api.app.state.gtfs_container.sync_scheduler()
        scheduler._sync_lock.acquire()
        try:
            response = api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)
        finally:
            scheduler._sync_lock.release()
        assert response.status_code == 409

    def test_sync_failure(self, api, feed_responses):
        feed_responses[FEED_URL] = (500, b"error")
        feed_responses[FALLBACK_URL] = (500, b"error")

        response = api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)

        assert response.status_code == 502
        assert FALLBACK_URL in response.json()["detail"]

    def test_damaged_archive_is_bad_gateway(self, api, feed_responses):
        feed_responses[FEED_URL] = (
            200, damaged_feed_zip("stop_times.txt", b"06:04:00,06:04:00", b"06:05:00,06:05:00")
        )

        response = api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)

        assert response.status_code == 502
        assert "stop_times.txt" in response.json()["detail"]
        status = api.app.state.gtfs_container.sync_scheduler().status
        assert status["error_count"] == 1


class TestEngineStartCallback:
    """Tests for the background engine start hook."""

    def test_crash_is_logged(self, caplog):
        async def scenario():
            future = asyncio.get_running_loop().create_future()
            future.set_exception(RuntimeError("java exited with code 1"))
            _log_engine_start_failure(future)

        with caplog.at_level(logging.ERROR, logger="app"):
            asyncio.run(scenario())

        assert "java exited with code 1" in caplog.text

    def test_clean_start_logs_nothing(self, caplog):
        async def scenario():
            future = asyncio.get_running_loop().create_future()
            future.set_result(None)
            _log_engine_start_failure(future)

        with caplog.at_level(logging.ERROR, logger="app"):
            asyncio.run(scenario())

        assert caplog.text == ""


class TestFeedEndpoints:
    """Tests for /api/v1/gtfs feed and stop endpoints."""

    def test_latest_feed_before_sync(self, api, api_base_url):
        response = api.get(f"{api_base_url}/gtfs/feeds/latest")
        assert response.status_code == 404

    def test_latest_feed(self, synced_api, api_base_url):
        response = synced_api.get(f"{api_base_url}/gtfs/feeds/latest")
        assert response.status_code == 200
        data = response.json()
        assert data["stops_count"] == 2
        assert data["status"] == "completed"
        assert data["source_url"] == FEED_URL

    def test_list_feeds(self, synced_api, api_base_url):
        synced_api.post("/admin/gtfs/sync", headers=ADMIN_HEADERS)
        feeds = synced_api.get(f"{api_base_url}/gtfs/feeds?limit=1").json()
        assert len(feeds) == 1
        assert feeds[0]["id"] == 2

    def test_sync_status(self, synced_api, api_base_url):
        data = synced_api.get(f"{api_base_url}/gtfs/sync/status").json()
        assert data["sync_count"] == 1
        assert data["last_summary"]["counts"]["routes"] == 1

    def test_nearby_stops(self, synced_api, api_base_url):
        response = synced_api.get(f"{api_base_url}/gtfs/stops/nearby?lat=-33.4378&lon=-70.6505&radius=1000")
        assert response.status_code == 200
        stops = response.json()
        assert [s["id"] for s in stops] == ["PA1", "PA2"]
        assert stops[0]["distance_meters"] == 0.0
        assert stops[0]["distance_meters"] < stops[1]["distance_meters"]

    def test_nearby_stops_radius(self, synced_api, api_base_url):
        stops = synced_api.get(f"{api_base_url}/gtfs/stops/nearby?lat=-33.4378&lon=-70.6505&radius=300").json()
        assert [s["id"] for s in stops] == ["PA1"]

    def test_nearby_stops_invalid_latitude(self, api, api_base_url):
        response = api.get(f"{api_base_url}/gtfs/stops/nearby?lat=-95&lon=-70.65")
        assert response.status_code == 422

    def test_stop_by_code(self, synced_api, api_base_url):
        response = synced_api.get(f"{api_base_url}/gtfs/stops/code/pa2")
        assert response.status_code == 200
        assert response.json()["name"] == "Santa Lucia"

    def test_stop_by_code_not_found(self, synced_api, api_base_url):
        response = synced_api.get(f"{api_base_url}/gtfs/stops/code/PA3")
        assert response.status_code == 404


class TestRouteEndpoints:
    """Tests for /api/v1/route."""

    def test_walking_route(self, api, api_base_url):
        response = api.get(f"{api_base_url}/route/walking?{ROUTE_QUERY}")
        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "engine"
        assert data["degraded"] is False
        assert data["reason"] is None
        assert data["legs"][0]["steps"][1]["street_name"] == "Santa Lucía"

    def test_walking_route_degraded(self, make_api, api_base_url):
        api = make_api(engine_transport(route_status=500, route_body=b"boom"))

        response = api.get(f"{api_base_url}/route/walking?{ROUTE_QUERY}")

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "fallback"
        assert data["degraded"] is True
        assert data["reason"] == "engine_error"
        assert data["geometry"] == [[-70.66, -33.45], [-70.68, -33.52]]

    def test_walking_route_invalid_coordinates(self, api, api_base_url):
        response = api.get(
            f"{api_base_url}/route/walking?origin_lat=95&origin_lon=-70.66&dest_lat=-33.52&dest_lon=-70.68"
        )
        assert response.status_code == 422

    def test_walking_distance(self, api, api_base_url):
        data = api.get(f"{api_base_url}/route/walking/distance?{ROUTE_QUERY}").json()
        assert data["distance_meters"] == 1450.5
        assert data["duration_formatted"] == "17 min"
        assert data["walkable"] is True
        assert data["degraded"] is False

    def test_driving_route(self, api, api_base_url):
        data = api.get(f"{api_base_url}/route/driving?{ROUTE_QUERY}").json()
        assert data["profile"] == "car"
        assert data["legs"][0]["mode"] == "car"

    def test_transit_alternatives(self, make_api, api_base_url):
        api = make_api(engine_transport(route_body=PT_RESPONSE))

        response = api.post(f"{api_base_url}/route/transit", json=TRANSIT_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["degraded"] is False
        ride = data["alternatives"][0]["legs"][1]
        assert ride["mode"] == "transit"
        assert ride["board_stop"] == "Plaza de Armas"
        assert ride["stop_names"] == ["Plaza de Armas", "Santa Lucia", "Bellas Artes"]

    def test_quick_transit_limits_walking(self, make_api, api_base_url):
        transport = engine_transport(route_body=PT_RESPONSE)
        api = make_api(transport)

        response = api.post(f"{api_base_url}/route/transit/quick", json=TRANSIT_BODY)

        assert response.status_code == 200
        assert response.json()["transfers"] == 0
        assert transport.requests[-1].url.params["pt.max_walk_distance_per_leg"] == "800"

    def test_transit_invalid_body(self, api, api_base_url):
        body = {"origin": {"lat": -33.45}, "destination": {"lat": -33.52, "lon": -70.68}}
        assert api.post(f"{api_base_url}/route/transit", json=body).status_code == 422

    def test_optimal_route(self, make_api, api_base_url):
        api = make_api(engine_transport(route_body=PT_RESPONSE))
        body = dict(TRANSIT_BODY, preferences={"minimize_transfers": True})

        data = api.post(f"{api_base_url}/route/transit/optimal", json=body).json()

        assert data["alternatives_count"] == 2
        assert data["optimal_reason"] == "fewest_transfers"
        assert data["route"]["transfers"] == 0

    def test_route_options(self, make_api, api_base_url):
        def handler(request):
            if request.url.params["profile"] == "foot":
                return httpx.Response(200, json=FOOT_RESPONSE)
            return httpx.Response(200, json=PT_RESPONSE)

        api = make_api(httpx.MockTransport(handler))
        data = api.post(f"{api_base_url}/route/options", json=TRANSIT_BODY).json()

        assert [o["type"] for o in data["options"]] == ["walking", "transit", "transit"]
        assert data["origin"] == {"lat": -33.45, "lon": -70.66}

    def test_route_options_none(self, make_api, api_base_url):
        api = make_api(engine_transport(route_status=503, route_body=b"loading"))
        response = api.post(f"{api_base_url}/route/options", json=TRANSIT_BODY)
        assert response.status_code == 404
