from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Query

from src.adapters.api.dependencies import (
    get_broadcaster,
    get_location_store,
    get_settings,
)
from src.adapters.api.schemas.tracking import (
    LocationEventSchema,
    LocationUpdateSchema,
    NearbyVehicleSchema,
    NearbyVehiclesSchema,
    VehicleHistorySchema,
    VehicleSampleSchema,
)
from src.adapters.settings import TrackingSettings
from src.app.services.broadcaster import Broadcaster
from src.app.services.location_store import LocationStore
from src.domain.exceptions import VehicleNotReporting
from src.domain.models import GeoPoint, LocationEvent, VehicleSample

router = APIRouter(prefix="/vehicles", tags=["tracking"])


def _sample_fields(s: VehicleSample) -> dict:
    return {
        "vehicle_id": s.vehicle_id,
        "trip_id": s.trip_id,
        "route_id": s.route_id,
        "latitude": s.latitude,
        "longitude": s.longitude,
        "speed_kmh": s.speed_kmh,
        "heading": s.heading,
        "accuracy": s.accuracy,
        "captured_at": s.captured_at,
    }


def _event_to_schema(event: LocationEvent) -> LocationEventSchema:
    return LocationEventSchema(
        vehicle_id=event.vehicle_id,
        trip_id=event.trip_id,
        route_id=event.route_id,
        latitude=event.latitude,
        longitude=event.longitude,
        speed_kmh=event.speed_kmh,
        heading=event.heading,
        timestamp=event.timestamp,
    )


@router.get("/nearby", response_model=NearbyVehiclesSchema)
def nearby_vehicles(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lon: float = Query(..., ge=-180.0, le=180.0),
    radius_m: float | None = Query(default=None, gt=0),
    store: LocationStore = Depends(get_location_store),
    settings: TrackingSettings = Depends(get_settings),
) -> NearbyVehiclesSchema:
    radius = radius_m or settings.nearby_radius_m
    found = store.nearby(
        GeoPoint(lat=lat, lon=lon),
        radius,
        timedelta(seconds=settings.freshness_s),
    )
    return NearbyVehiclesSchema(
        lat=lat,
        lon=lon,
        radius_m=radius,
        vehicles=[
            NearbyVehicleSchema(**_sample_fields(n.sample), distance_m=n.distance_m)
            for n in found
        ],
    )


# Async so reports are applied on the event loop, in arrival order.
@router.post("/{vehicle_id}/location", response_model=LocationEventSchema)
async def update_location(
    vehicle_id: str,
    body: LocationUpdateSchema,
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> LocationEventSchema:
    event = broadcaster.on_location_update(
        {"vehicle_id": vehicle_id, **body.model_dump()}
    )
    return _event_to_schema(event)


@router.get("/{vehicle_id}/location", response_model=VehicleSampleSchema)
def latest_location(
    vehicle_id: str,
    store: LocationStore = Depends(get_location_store),
) -> VehicleSampleSchema:
    sample = store.latest(vehicle_id)
    if sample is None:
        raise VehicleNotReporting(f"Vehicle {vehicle_id} has not reported a location")
    return VehicleSampleSchema(**_sample_fields(sample))


@router.get("/{vehicle_id}/history", response_model=VehicleHistorySchema)
def location_history(
    vehicle_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    store: LocationStore = Depends(get_location_store),
) -> VehicleHistorySchema:
    samples = store.history(vehicle_id, limit)
    return VehicleHistorySchema(
        vehicle_id=vehicle_id,
        count=len(samples),
        samples=[VehicleSampleSchema(**_sample_fields(s)) for s in samples],
    )


@router.post("/{vehicle_id}/tracking/stop")
def stop_tracking(
    vehicle_id: str,
    store: LocationStore = Depends(get_location_store),
) -> dict[str, object]:
    if not store.stop_tracking(vehicle_id):
        raise VehicleNotReporting(f"Vehicle {vehicle_id} has not reported a location")
    return {"vehicle_id": vehicle_id, "tracking": False}
