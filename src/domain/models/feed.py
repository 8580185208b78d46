from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class FeedVehicle:
    """A vehicle as published by an external positions feed (speed in m/s)."""

    vehicle_id: str | None
    trip_id: str | None
    route_id: str | None
    lat: float
    lon: float
    speed_mps: float | None = None
    timestamp: datetime | None = None

    def to_report(self) -> dict[str, Any]:
        """Raw location report in the shape drivers send."""

        return {
            "vehicle_id": self.vehicle_id,
            "trip_id": self.trip_id,
            "route_id": self.route_id,
            "latitude": self.lat,
            "longitude": self.lon,
            "speed": self.speed_mps,
            "timestamp": self.timestamp,
        }
