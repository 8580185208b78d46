from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CapacityRecord:
    """Seat accounting snapshot for one trip.

    ``seats_booked`` may exceed ``total_seats`` after a capacity edit; bookings
    are never dropped to make the numbers fit.
    """

    trip_id: str
    total_seats: int
    seats_booked: int = 0

    @property
    def seats_available(self) -> int:
        return max(0, self.total_seats - self.seats_booked)

    @property
    def over_capacity(self) -> bool:
        return self.seats_booked > self.total_seats


@dataclass(frozen=True, slots=True)
class FareQuote:
    estimated_distance_km: float
    fare_per_passenger: float
    total_fare: float
    passengers: int
