from .agency_model import AgencyModel

__all__ = ["AgencyModel"]
