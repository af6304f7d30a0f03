from .gtfs_container import GTFSContainer
from .routing_container import RoutingContainer

__all__ = ["GTFSContainer", "RoutingContainer"]
