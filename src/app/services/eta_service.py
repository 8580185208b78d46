from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta

from src.app.ports.output import ITransitRepository
from src.app.services.location_store import LocationStore
from src.domain.algorithms.eta import eta_minutes, format_eta
from src.domain.algorithms.geo_utils import distance_km
from src.domain.exceptions import RouteNotFound, StopNotFound, VehicleNotReporting
from src.domain.models import (
    EtaResult,
    GeoPoint,
    NextArrivals,
    RouteEtaResult,
    Stop,
    VehicleSample,
)


def estimate_eta(sample: VehicleSample, stop: Stop) -> EtaResult:
    """ETA from one position snapshot to one stop."""

    distance = distance_km(sample.position, stop.location)
    minutes = eta_minutes(distance, sample.speed_kmh)
    return EtaResult(
        vehicle_id=sample.vehicle_id,
        stop_id=stop.id,
        stop_name=stop.name,
        distance_km=round(distance, 2),
        current_speed=round(sample.speed_kmh, 1),
        eta_minutes=minutes,
        eta_text=format_eta(minutes),
    )


@dataclass(slots=True)
class EtaService:
    """Live arrival estimates from the latest tracked positions.

    Stop and route lookups go to the transit repository; a failing lookup is
    surfaced to the caller (no stale fallback).
    """

    store: LocationStore
    transit_repository: ITransitRepository
    active_window_s: float = 600.0

    def _latest(self, vehicle_id: str) -> VehicleSample:
        sample = self.store.latest(vehicle_id)
        if sample is None:
            raise VehicleNotReporting(
                f"Vehicle {vehicle_id} has not reported a location"
            )
        return sample

    async def _stop(self, stop_id: str) -> Stop:
        stop = await asyncio.to_thread(self.transit_repository.get_stop, stop_id)
        if stop is None:
            raise StopNotFound(f"Stop {stop_id} not found")
        return stop

    async def eta_to_stop(self, *, vehicle_id: str, stop_id: str) -> EtaResult:
        sample = self._latest(vehicle_id)
        stop = await self._stop(stop_id)
        return estimate_eta(sample, stop)

    async def eta_for_route(
        self, *, vehicle_id: str, route_id: str, rider: GeoPoint
    ) -> RouteEtaResult:
        sample = self._latest(vehicle_id)
        route_stops = await asyncio.to_thread(
            self.transit_repository.get_route_stops, route_id
        )
        if not route_stops:
            raise RouteNotFound(f"No stops found on route {route_id}")

        # Strict comparison: the first stop in route order wins ties.
        nearest = route_stops[0].stop
        nearest_km = distance_km(rider, nearest.location)
        for rs in route_stops[1:]:
            d = distance_km(rider, rs.stop.location)
            if d < nearest_km:
                nearest_km = d
                nearest = rs.stop

        return RouteEtaResult(
            eta=estimate_eta(sample, nearest),
            nearest_stop=nearest.name,
            distance_to_stop_km=round(nearest_km, 2),
        )

    async def next_arrivals(self, *, stop_id: str) -> NextArrivals:
        stop = await self._stop(stop_id)
        route_ids = await asyncio.to_thread(
            self.transit_repository.routes_serving_stop, stop_id
        )
        samples = self.store.active_vehicles(
            route_ids, timedelta(seconds=self.active_window_s)
        )
        etas = sorted(
            (estimate_eta(s, stop) for s in samples), key=lambda e: e.eta_minutes
        )
        return NextArrivals(stop_id=stop_id, arrivals=tuple(etas))
