from __future__ import annotations

from dataclasses import dataclass

from .geo import GeoPoint


@dataclass(frozen=True, slots=True)
class Stop:
    id: str
    name: str
    location: GeoPoint


@dataclass(frozen=True, slots=True)
class RouteStop:
    """A stop as it appears on a route, in travel order."""

    stop: Stop
    sequence: int
