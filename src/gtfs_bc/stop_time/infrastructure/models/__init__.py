from .stop_time_model import StopTimeModel

__all__ = ["StopTimeModel"]
