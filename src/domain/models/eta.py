from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class EtaResult:
    vehicle_id: str
    stop_id: str
    stop_name: str
    distance_km: float
    current_speed: float
    eta_minutes: int
    eta_text: str


@dataclass(frozen=True, slots=True)
class RouteEtaResult:
    """ETA to the route stop nearest to a rider."""

    eta: EtaResult
    nearest_stop: str
    distance_to_stop_km: float


@dataclass(frozen=True, slots=True)
class NextArrivals:
    stop_id: str
    arrivals: tuple[EtaResult, ...] = ()

    @property
    def has_active_vehicles(self) -> bool:
        return bool(self.arrivals)

    @property
    def message(self) -> str | None:
        if self.arrivals:
            return None
        return "No active vehicles found for this stop"
