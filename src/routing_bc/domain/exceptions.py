"""Errors raised by the routing engine supervisor and client."""
from typing import List, Optional


class RoutingError(Exception):
    """Base class for routing engine failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EngineNotFoundError(RoutingError):
    """The engine executable, its config or its graph cache is missing."""

    def __init__(self, message: str, searched_paths: Optional[List[str]] = None):
        self.searched_paths = searched_paths or []
        if self.searched_paths:
            message += "\nSearched paths:\n" + "\n".join(f"  - {p}" for p in self.searched_paths)
        super().__init__(message)


class EngineStartError(RoutingError):
    """The engine process could not be spawned."""


class RouteQueryError(RoutingError):
    """Transport failure, timeout, non-2xx status or undecodable response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class EngineUnhealthyWarning(UserWarning):
    """The engine did not pass a health check within the polling budget."""
