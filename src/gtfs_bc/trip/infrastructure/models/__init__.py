from .trip_model import TripModel
from .frequency_model import FrequencyModel

__all__ = ["TripModel", "FrequencyModel"]
