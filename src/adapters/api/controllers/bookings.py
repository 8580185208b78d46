from __future__ import annotations

from fastapi import APIRouter, Depends

from src.adapters.api.dependencies import get_booking_service
from src.adapters.api.schemas.bookings import (
    BookingCancelledSchema,
    BookingCreatedSchema,
    BookingRequestSchema,
    BookingSchema,
    CapacityUpdateSchema,
    FareSchema,
    SeatsSchema,
    TripSchema,
    TripStartSchema,
    TripStopSchema,
)
from src.app.services.booking_service import BookingService
from src.domain.models import Booking, CapacityRecord, Trip, TripStop
from src.domain.models.booking import parse_booking_key

router = APIRouter(tags=["bookings"])


def _booking_to_schema(booking: Booking) -> BookingSchema:
    return BookingSchema(
        booking_id=booking.booking_id,
        booking_reference=booking.reference,
        trip_id=booking.trip_id,
        route_id=booking.route_id,
        vehicle_id=booking.vehicle_id,
        passenger_name=booking.passenger_name,
        passenger_phone=booking.passenger_phone,
        pickup_stop_id=booking.pickup_stop_id,
        dropoff_stop_id=booking.dropoff_stop_id,
        number_of_passengers=booking.passengers,
        fare_amount=booking.fare_amount,
        booking_status=booking.status.value,
        created_at=booking.created_at,
    )


def _seats_to_schema(record: CapacityRecord) -> SeatsSchema:
    return SeatsSchema(
        trip_id=record.trip_id,
        total_seats=record.total_seats,
        seats_booked=record.seats_booked,
        seats_available=record.seats_available,
        over_capacity=record.over_capacity,
    )


def _trip_to_schema(trip: Trip, record: CapacityRecord | None = None) -> TripSchema:
    return TripSchema(
        trip_id=trip.trip_id,
        route_id=trip.route_id,
        vehicle_id=trip.vehicle_id,
        driver_id=trip.driver_id,
        status=trip.status.value,
        base_fare=trip.base_fare,
        fare_per_km=trip.fare_per_km,
        distance_km=trip.distance_km,
        stops=[
            TripStopSchema(stop_id=s.stop_id, sequence=s.sequence) for s in trip.stops
        ],
        started_at=trip.started_at,
        seats=_seats_to_schema(record) if record is not None else None,
    )


@router.post("/bookings", response_model=BookingCreatedSchema, status_code=201)
async def create_booking(
    req: BookingRequestSchema,
    service: BookingService = Depends(get_booking_service),
) -> BookingCreatedSchema:
    booking, quote = await service.create_booking(
        trip_id=req.trip_id,
        pickup_stop_id=req.pickup_stop_id,
        dropoff_stop_id=req.dropoff_stop_id,
        passenger_name=req.passenger_name,
        passenger_phone=req.passenger_phone,
        passengers=req.number_of_passengers,
    )
    return BookingCreatedSchema(
        booking=_booking_to_schema(booking),
        fare=FareSchema(
            estimated_distance_km=round(quote.estimated_distance_km, 2),
            fare_per_passenger=round(quote.fare_per_passenger, 2),
            total_fare=round(quote.total_fare, 2),
        ),
    )


@router.get("/bookings/{booking_key}", response_model=BookingSchema)
async def get_booking(
    booking_key: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingSchema:
    booking = await service.get_booking(parse_booking_key(booking_key))
    return _booking_to_schema(booking)


@router.post("/bookings/{booking_key}/cancel", response_model=BookingCancelledSchema)
async def cancel_booking(
    booking_key: str,
    service: BookingService = Depends(get_booking_service),
) -> BookingCancelledSchema:
    booking, available = await service.cancel_booking(parse_booking_key(booking_key))
    return BookingCancelledSchema(
        booking=_booking_to_schema(booking), seats_available=available
    )


@router.post("/trips", response_model=TripSchema, status_code=201)
async def start_trip(
    req: TripStartSchema,
    service: BookingService = Depends(get_booking_service),
) -> TripSchema:
    trip, record = await service.start_trip(
        route_id=req.route_id,
        vehicle_id=req.vehicle_id,
        driver_id=req.driver_id,
        stops=[TripStop(s.stop_id, s.sequence) for s in req.stops],
        base_fare=req.base_fare,
        fare_per_km=req.fare_per_km,
        distance_km=req.distance_km,
        total_seats=req.total_seats,
    )
    return _trip_to_schema(trip, record)


@router.post("/trips/{trip_id}/end", response_model=TripSchema)
async def end_trip(
    trip_id: str,
    service: BookingService = Depends(get_booking_service),
) -> TripSchema:
    return _trip_to_schema(await service.end_trip(trip_id))


@router.get("/trips/{trip_id}/seats", response_model=SeatsSchema)
async def available_seats(
    trip_id: str,
    service: BookingService = Depends(get_booking_service),
) -> SeatsSchema:
    return _seats_to_schema(await service.available_seats(trip_id))


@router.put("/trips/{trip_id}/capacity", response_model=SeatsSchema)
async def set_capacity(
    trip_id: str,
    req: CapacityUpdateSchema,
    service: BookingService = Depends(get_booking_service),
) -> SeatsSchema:
    return _seats_to_schema(await service.set_capacity(trip_id, req.total_seats))
