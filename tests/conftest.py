"""Pytest configuration and fixtures."""

import io
import os
import zipfile

# Settings are read on import: point them at test values first
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("GRAPHHOPPER_AUTOSTART", "false")
os.environ.setdefault("GTFS_AUTO_SYNC", "false")

import httpx
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import build_engine, create_all

FEED_URL = "https://feeds.test/gtfs.zip"
FALLBACK_URL = "https://mirror.test/gtfs.zip"

# Three stops, one with an unparsable latitude; one route, one trip and
# four stop_times that only visit the two valid stops
SAMPLE_FEED = {
    "agency.txt": (
        "agency_id,agency_name,agency_url,agency_timezone\n"
        "RED,Red Metropolitana de Movilidad,https://www.red.cl,America/Santiago\n"
    ),
    "stops.txt": (
        "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
        "PA1,PA1,Plaza de Armas,-33.4378,-70.6505\n"
        "PA2,PA2,Santa Lucia,-33.4400,-70.6440\n"
        "PA3,PA3,Estacion Rota,abc,-70.6600\n"
    ),
    "routes.txt": (
        "route_id,agency_id,route_short_name,route_long_name,route_type\n"
        "210,RED,210,Estacion Central - Providencia,3\n"
    ),
    "trips.txt": (
        "route_id,service_id,trip_id,trip_headsign,direction_id\n"
        "210,L,210-I-L-1,Providencia,0\n"
    ),
    "stop_times.txt": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "210-I-L-1,06:00:00,06:00:00,PA1,1\n"
        "210-I-L-1,06:04:00,06:04:00,PA2,2\n"
        "210-I-L-1,06:09:00,06:09:00,PA1,3\n"
        "210-I-L-1,24:13:00,24:13:00,PA2,4\n"
    ),
    "calendar.txt": (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "L,1,1,1,1,1,0,0,20250101,20251231\n"
    ),
    "feed_info.txt": (
        "feed_publisher_name,feed_publisher_url,feed_lang,feed_version\n"
        "DTPM,https://www.dtpm.cl,es,2025-10-01\n"
    ),
}


def build_feed_zip(files, folder=""):
    """Zip ``{filename: text}`` into GTFS archive bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(folder + name, content)
    return buffer.getvalue()


def damaged_feed_zip(filename, old, new):
    """Sample feed stored uncompressed with ``old`` overwritten in ``filename``.

    The member keeps its size but no longer matches its CRC-32.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as archive:
        for name, content in SAMPLE_FEED.items():
            archive.writestr(name, content)
    content = buffer.getvalue()
    assert old in SAMPLE_FEED[filename].encode() and len(old) == len(new)
    return content.replace(old, new, 1)


def feed_server(responses):
    """MockTransport answering ``{url: (status, body)}``; unknown URLs fail to connect."""
    requests = []

    def handler(request):
        requests.append(str(request.url))
        if str(request.url) not in responses:
            raise httpx.ConnectError("connection refused", request=request)
        status, body = responses[str(request.url)]
        return httpx.Response(status, content=body)

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of a test."""
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sample_feed_zip():
    return build_feed_zip(SAMPLE_FEED)


@pytest.fixture
def api_base_url():
    """Base URL for versioned API endpoints."""
    return "/api/v1"


# Engine answers for a walk across Santiago centro and a bus trip with one
# ride on route 210
FOOT_RESPONSE = {
    "paths": [{
        "distance": 1450.5,
        "time": 1044000,
        "points": {"type": "LineString", "coordinates": [[-70.6505, -33.4378], [-70.6470, -33.4390], [-70.6440, -33.4400]]},
        "instructions": [
            {"distance": 900.0, "time": 648000, "sign": 0, "text": "Continúa por Alameda", "street_name": "Alameda", "interval": [0, 1]},
            {"distance": 550.5, "time": 396000, "sign": 2, "text": "Gira a la derecha por Santa Lucía", "street_name": "Santa Lucía", "interval": [1, 2]},
            {"distance": 0.0, "time": 0, "sign": 4, "text": "Llegada a destino", "interval": [2, 2]},
        ],
    }],
    "info": {"copyrights": ["GraphHopper", "OpenStreetMap contributors"]},
}

PT_RESPONSE = {
    "paths": [
        {
            "distance": 6200.0,
            "time": 1980000,
            "transfers": 0,
            "points": {"type": "LineString", "coordinates": [[-70.66, -33.45], [-70.67, -33.48], [-70.68, -33.52]]},
            "legs": [
                {
                    "type": "walk",
                    "distance": 320.0,
                    "departure_time": "2025-10-15T12:02:00Z",
                    "arrival_time": "2025-10-15T12:06:00Z",
                    "geometry": {"type": "LineString", "coordinates": [[-70.66, -33.45], [-70.661, -33.452]]},
                    "instructions": [{"distance": 320.0, "time": 240000, "sign": 0, "text": "Continúa por Alameda"}],
                },
                {
                    "type": "pt",
                    "distance": 5500.0,
                    "departure_time": "2025-10-15T12:08:00Z",
                    "arrival_time": "2025-10-15T12:29:00Z",
                    "route_id": "210",
                    "trip_id": "210-I-L-1",
                    "route_short_name": "210",
                    "route_long_name": "Estacion Central - Providencia",
                    "trip_headsign": "Providencia",
                    "geometry": {"type": "LineString", "coordinates": [[-70.661, -33.452], [-70.675, -33.515]]},
                    "stops": [
                        {"stop_id": "PA1", "stop_name": "Plaza de Armas", "geometry": {"type": "Point", "coordinates": [-70.661, -33.452]}},
                        {"stop_id": "PA2", "stop_name": "Santa Lucia", "geometry": {"type": "Point", "coordinates": [-70.668, -33.48]}},
                        {"stop_id": "PA4", "stop_name": "Bellas Artes", "geometry": {"type": "Point", "coordinates": [-70.675, -33.515]}},
                    ],
                },
                {
                    "type": "walk",
                    "distance": 380.0,
                    "departure_time": "2025-10-15T12:29:00Z",
                    "arrival_time": "2025-10-15T12:35:00Z",
                    "geometry": {"type": "LineString", "coordinates": [[-70.675, -33.515], [-70.68, -33.52]]},
                    "instructions": [{"distance": 380.0, "time": 360000, "sign": 0, "text": "Continúa por Gran Avenida"}],
                },
            ],
        },
        {
            "distance": 7100.0,
            "time": 1740000,
            "transfers": 1,
            "points": {"type": "LineString", "coordinates": [[-70.66, -33.45], [-70.68, -33.52]]},
            "legs": [
                {"type": "walk", "distance": 900.0, "departure_time": "2025-10-15T12:02:00Z", "arrival_time": "2025-10-15T12:12:00Z"},
                {
                    "type": "pt", "distance": 3000.0, "route_short_name": "210",
                    "departure_time": "2025-10-15T12:12:00Z", "arrival_time": "2025-10-15T12:20:00Z",
                },
                {
                    "type": "pt", "distance": 3200.0, "route_short_name": "L1",
                    "departure_time": "2025-10-15T12:22:00Z", "arrival_time": "2025-10-15T12:31:00Z",
                },
            ],
        },
    ],
    "info": {"copyrights": ["GraphHopper"]},
}


def engine_transport(route_status=200, route_body=None, health_status=200, route_error=None):
    """MockTransport for the engine's /route and /health endpoints."""
    requests = []

    def handler(request):
        requests.append(request)
        if request.url.path == "/health":
            return httpx.Response(health_status, text="OK")
        if route_error is not None:
            raise route_error
        if route_body is None or isinstance(route_body, dict):
            return httpx.Response(route_status, json=route_body or {"paths": []})
        return httpx.Response(route_status, content=route_body)

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport
