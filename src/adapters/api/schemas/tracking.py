from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class LocationUpdateSchema(BaseModel):
    """Driver report. Coordinates are range-checked by the broadcaster."""

    trip_id: str | None = None
    route_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    speed: float | None = Field(default=None, description="Speed in m/s")
    accuracy: float | None = None
    timestamp: datetime | None = None


class LocationEventSchema(BaseModel):
    type: Literal["location"] = "location"
    vehicle_id: str
    trip_id: str | None = None
    route_id: str | None = None
    latitude: float
    longitude: float
    speed_kmh: float
    heading: float | None = None
    timestamp: datetime


class VehicleSampleSchema(BaseModel):
    vehicle_id: str
    trip_id: str | None = None
    route_id: str | None = None
    latitude: float
    longitude: float
    speed_kmh: float
    heading: float | None = None
    accuracy: float | None = None
    captured_at: datetime


class VehicleHistorySchema(BaseModel):
    vehicle_id: str
    count: int
    samples: list[VehicleSampleSchema]


class NearbyVehicleSchema(VehicleSampleSchema):
    distance_m: float


class NearbyVehiclesSchema(BaseModel):
    lat: float
    lon: float
    radius_m: float
    vehicles: list[NearbyVehicleSchema]
