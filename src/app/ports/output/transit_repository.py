from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import RouteStop, Stop


class ITransitRepository(ABC):
    """Port for static network topology: stops and the ordered stops of routes."""

    @abstractmethod
    def get_stop(self, stop_id: str) -> Stop | None:
        raise NotImplementedError

    @abstractmethod
    def get_route_stops(self, route_id: str) -> tuple[RouteStop, ...]:
        """Return the route's stops ordered by sequence; empty if unknown."""

    @abstractmethod
    def routes_serving_stop(self, stop_id: str) -> frozenset[str]:
        raise NotImplementedError
