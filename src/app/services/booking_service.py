from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from uuid import uuid4

from src.app.ports.output import IBookingRepository
from src.app.services.broadcaster import Broadcaster
from src.app.services.capacity_ledger import CapacityLedger
from src.domain.algorithms.fare import estimate_fare
from src.domain.exceptions import BookingNotFound, InvalidInput, TripNotFound
from src.domain.models import (
    Booking,
    BookingKey,
    BookingStatus,
    CapacityRecord,
    FareQuote,
    Topic,
    Trip,
    TripStatus,
    TripStop,
)
from src.domain.models.booking import new_booking_reference

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BookingService:
    """Seat bookings: fare, reservation against the ledger, durable commit."""

    ledger: CapacityLedger
    booking_repository: IBookingRepository
    broadcaster: Broadcaster | None = None

    async def _trip(self, trip_id: str) -> Trip:
        trip = await asyncio.to_thread(self.booking_repository.get_trip, trip_id)
        if trip is None:
            raise TripNotFound(f"Trip {trip_id} not found")
        return trip

    async def _capacity(self, trip_id: str) -> CapacityRecord:
        current = self.ledger.get(trip_id)
        if current is not None:
            return current

        stored = await asyncio.to_thread(
            self.booking_repository.get_trip_capacity, trip_id
        )
        if stored is None:
            # No capacity row: the ledger applies its default, but only for real trips.
            await self._trip(trip_id)
        return self.ledger.load(trip_id, stored)

    def _notify_driver(self, trip: Trip, message: dict) -> None:
        if self.broadcaster is None or not trip.driver_id:
            return
        self.broadcaster.publish(Topic.driver(trip.driver_id), message)

    async def create_booking(
        self,
        *,
        trip_id: str,
        pickup_stop_id: str,
        dropoff_stop_id: str,
        passenger_name: str,
        passenger_phone: str,
        passengers: int = 1,
    ) -> tuple[Booking, FareQuote]:
        if passengers < 1:
            raise InvalidInput("At least one passenger is required")

        trip = await self._trip(trip_id)
        if trip.status is not TripStatus.ACTIVE:
            raise InvalidInput("Trip is no longer active")

        pickup_seq = trip.sequence_of(pickup_stop_id)
        dropoff_seq = trip.sequence_of(dropoff_stop_id)
        if pickup_seq is None or dropoff_seq is None:
            raise InvalidInput("Invalid pickup or dropoff stop")
        if pickup_seq >= dropoff_seq:
            raise InvalidInput("Pickup stop must be before dropoff stop")

        quote = estimate_fare(
            base_fare=trip.base_fare,
            fare_per_km=trip.fare_per_km,
            stops_between=dropoff_seq - pickup_seq,
            total_stops=len(trip.stops),
            route_distance_km=trip.distance_km,
            passengers=passengers,
        )

        await self._capacity(trip_id)
        self.ledger.reserve(trip_id, passengers)
        try:
            booking_id = await asyncio.to_thread(
                self.booking_repository.allocate_booking_id
            )
            booking = Booking(
                booking_id=booking_id,
                reference=new_booking_reference(),
                trip_id=trip.trip_id,
                route_id=trip.route_id,
                vehicle_id=trip.vehicle_id,
                passenger_name=passenger_name,
                passenger_phone=passenger_phone,
                pickup_stop_id=pickup_stop_id,
                dropoff_stop_id=dropoff_stop_id,
                passengers=passengers,
                fare_amount=round(quote.total_fare, 2),
                status=BookingStatus.CONFIRMED,
                created_at=datetime.now(timezone.utc),
            )
            await asyncio.to_thread(self.booking_repository.persist_booking, booking)
        except Exception:
            self.ledger.release(trip_id, passengers)
            raise

        logger.info(
            "Booking %s created for trip %s: %d seat(s), fare %.2f",
            booking.reference,
            trip_id,
            passengers,
            booking.fare_amount,
        )
        self._notify_driver(
            trip,
            {
                "type": "booking",
                "booking_id": booking.booking_id,
                "reference": booking.reference,
                "trip_id": trip.trip_id,
                "passenger_name": booking.passenger_name,
                "pickup_stop_id": booking.pickup_stop_id,
                "number_of_passengers": booking.passengers,
            },
        )
        return booking, quote

    async def get_booking(self, key: BookingKey) -> Booking:
        booking = await asyncio.to_thread(self.booking_repository.get_booking, key)
        if booking is None:
            raise BookingNotFound("Booking not found")
        return booking

    async def cancel_booking(self, key: BookingKey) -> tuple[Booking, int]:
        """Cancel a booking; returns it with the trip's seats now available.

        Cancelling an already cancelled booking changes nothing.
        """

        booking = await self.get_booking(key)
        capacity = await self._capacity(booking.trip_id)
        if booking.status is BookingStatus.CANCELLED:
            return booking, capacity.seats_available

        cancelled = replace(booking, status=BookingStatus.CANCELLED)
        changed = await asyncio.to_thread(
            self.booking_repository.persist_cancellation, cancelled
        )
        if not changed:
            # A concurrent cancel won the conditional write and released the seats.
            logger.info("Booking %s was already cancelled", booking.reference)
            current = self.ledger.get(booking.trip_id) or capacity
            return cancelled, current.seats_available

        available = self.ledger.release(booking.trip_id, booking.passengers)

        logger.info(
            "Booking %s cancelled; trip %s has %d seat(s) available",
            booking.reference,
            booking.trip_id,
            available,
        )
        trip = await asyncio.to_thread(
            self.booking_repository.get_trip, booking.trip_id
        )
        if trip is not None:
            self._notify_driver(
                trip,
                {
                    "type": "booking_cancelled",
                    "booking_id": booking.booking_id,
                    "reference": booking.reference,
                    "trip_id": booking.trip_id,
                    "number_of_passengers": booking.passengers,
                },
            )
        return cancelled, available

    async def available_seats(self, trip_id: str) -> CapacityRecord:
        return await self._capacity(trip_id)

    async def set_capacity(self, trip_id: str, total_seats: int) -> CapacityRecord:
        if total_seats < 0:
            raise InvalidInput("total_seats must not be negative")
        await self._capacity(trip_id)
        record = self.ledger.set_capacity(trip_id, total_seats)
        await asyncio.to_thread(self.booking_repository.put_trip_capacity, record)
        return record

    async def start_trip(
        self,
        *,
        route_id: str,
        vehicle_id: str,
        stops: Sequence[TripStop],
        base_fare: float,
        fare_per_km: float,
        distance_km: float,
        driver_id: str | None = None,
        total_seats: int | None = None,
    ) -> tuple[Trip, CapacityRecord]:
        """Open a trip for booking; the ledger starts with no seats taken."""

        if not route_id or not vehicle_id:
            raise InvalidInput("route_id and vehicle_id are required")
        if len(stops) < 2:
            raise InvalidInput("A trip needs at least two stops")
        if len({s.stop_id for s in stops}) != len(stops):
            raise InvalidInput("Trip stops must be unique")
        if len({s.sequence for s in stops}) != len(stops):
            raise InvalidInput("Trip stop sequences must be unique")
        for name, value in (
            ("base_fare", base_fare),
            ("fare_per_km", fare_per_km),
            ("distance_km", distance_km),
        ):
            if not math.isfinite(value) or value < 0:
                raise InvalidInput(f"{name} must be a non-negative number")
        seats = self.ledger.default_total_seats if total_seats is None else total_seats
        if seats < 0:
            raise InvalidInput("total_seats must not be negative")

        if driver_id:
            active = await asyncio.to_thread(
                self.booking_repository.find_active_trip, driver_id
            )
            if active is not None:
                raise InvalidInput(
                    f"Driver {driver_id} already has active trip {active.trip_id}"
                )

        trip = Trip(
            trip_id=str(uuid4()),
            route_id=route_id,
            vehicle_id=vehicle_id,
            driver_id=driver_id or None,
            status=TripStatus.ACTIVE,
            base_fare=base_fare,
            fare_per_km=fare_per_km,
            distance_km=distance_km,
            stops=tuple(sorted(stops, key=lambda s: s.sequence)),
            started_at=datetime.now(timezone.utc),
        )
        record = CapacityRecord(trip.trip_id, seats, 0)
        await asyncio.to_thread(self.booking_repository.put_trip, trip, record)
        self.ledger.open_trip(trip.trip_id, seats)

        logger.info(
            "Trip %s started on route %s with vehicle %s, %d seat(s)",
            trip.trip_id,
            route_id,
            vehicle_id,
            seats,
        )
        return trip, record

    async def end_trip(self, trip_id: str) -> Trip:
        """Complete a trip. Ending a completed trip changes nothing."""

        trip = await self._trip(trip_id)
        if trip.status is TripStatus.COMPLETED:
            return trip

        await asyncio.to_thread(self.booking_repository.complete_trip, trip_id)
        closed = self.ledger.close_trip(trip_id)
        logger.info(
            "Trip %s completed with %d seat(s) booked",
            trip_id,
            closed.seats_booked if closed is not None else 0,
        )
        return replace(trip, status=TripStatus.COMPLETED)
