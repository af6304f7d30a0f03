# Models registry for Alembic autogenerate
# Import all SQLAlchemy models here so Alembic can detect them

from src.gtfs_bc.feed.infrastructure.models import FeedModel
from src.gtfs_bc.agency.infrastructure.models import AgencyModel
from src.gtfs_bc.route.infrastructure.models import RouteModel
from src.gtfs_bc.stop.infrastructure.models import StopModel
from src.gtfs_bc.trip.infrastructure.models import TripModel, FrequencyModel
from src.gtfs_bc.stop_time.infrastructure.models import StopTimeModel
from src.gtfs_bc.calendar.infrastructure.models import CalendarModel, CalendarDateModel
from src.gtfs_bc.shape.infrastructure.models import ShapePointModel
from src.gtfs_bc.transfer.infrastructure.models import TransferModel

__all__ = [
    "FeedModel",
    "AgencyModel",
    "RouteModel",
    "StopModel",
    "TripModel",
    "FrequencyModel",
    "StopTimeModel",
    "CalendarModel",
    "CalendarDateModel",
    "ShapePointModel",
    "TransferModel",
]
