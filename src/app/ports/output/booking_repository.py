from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import Booking, BookingKey, CapacityRecord, Trip


class IBookingRepository(ABC):
    """Port for trips, their seat capacity and bookings."""

    @abstractmethod
    def get_trip(self, trip_id: str) -> Trip | None:
        raise NotImplementedError

    @abstractmethod
    def find_active_trip(self, driver_id: str) -> Trip | None:
        """Return the driver's trip that is still active, if any."""

    @abstractmethod
    def put_trip(self, trip: Trip, capacity: CapacityRecord) -> None:
        """Store a newly started trip together with its seat capacity."""

    @abstractmethod
    def complete_trip(self, trip_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_trip_capacity(self, trip_id: str) -> CapacityRecord | None:
        """Return the stored capacity row, or None if the trip has none."""

    @abstractmethod
    def put_trip_capacity(self, record: CapacityRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def allocate_booking_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def persist_booking(self, booking: Booking) -> None:
        raise NotImplementedError

    @abstractmethod
    def persist_cancellation(self, booking: Booking) -> bool:
        """Mark a confirmed booking cancelled and give its seats back.

        Returns False, writing nothing, when the stored booking is no longer
        confirmed.
        """

    @abstractmethod
    def get_booking(self, key: BookingKey) -> Booking | None:
        raise NotImplementedError
