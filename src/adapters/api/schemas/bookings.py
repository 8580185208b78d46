from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class BookingRequestSchema(BaseModel):
    trip_id: str
    pickup_stop_id: str
    dropoff_stop_id: str
    passenger_name: str = Field(..., min_length=1)
    passenger_phone: str = Field(..., min_length=1)
    number_of_passengers: int = Field(default=1, ge=1)


class FareSchema(BaseModel):
    estimated_distance_km: float
    fare_per_passenger: float
    total_fare: float


class BookingSchema(BaseModel):
    booking_id: int
    booking_reference: str
    trip_id: str
    route_id: str
    vehicle_id: str
    passenger_name: str
    passenger_phone: str
    pickup_stop_id: str
    dropoff_stop_id: str
    number_of_passengers: int
    fare_amount: float
    booking_status: Literal["CONFIRMED", "CANCELLED"]
    created_at: datetime


class BookingCreatedSchema(BaseModel):
    booking: BookingSchema
    fare: FareSchema


class BookingCancelledSchema(BaseModel):
    booking: BookingSchema
    seats_available: int


class SeatsSchema(BaseModel):
    trip_id: str
    total_seats: int
    seats_booked: int
    seats_available: int
    over_capacity: bool


class CapacityUpdateSchema(BaseModel):
    total_seats: int = Field(..., ge=0)


class TripStopSchema(BaseModel):
    stop_id: str = Field(..., min_length=1)
    sequence: int = Field(..., ge=1)


class TripStartSchema(BaseModel):
    route_id: str = Field(..., min_length=1)
    vehicle_id: str = Field(..., min_length=1)
    driver_id: str | None = None
    stops: list[TripStopSchema] = Field(..., min_length=2)
    base_fare: float = Field(..., ge=0, allow_inf_nan=False)
    fare_per_km: float = Field(..., ge=0, allow_inf_nan=False)
    distance_km: float = Field(..., ge=0, allow_inf_nan=False)
    total_seats: int | None = Field(default=None, ge=0)


class TripSchema(BaseModel):
    trip_id: str
    route_id: str
    vehicle_id: str
    driver_id: str | None
    status: Literal["active", "completed"]
    base_fare: float
    fare_per_km: float
    distance_km: float
    stops: list[TripStopSchema]
    started_at: datetime | None = None
    seats: SeatsSchema | None = None
