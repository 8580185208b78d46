from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.app.services.keyed_lock import KeyedLock
from src.domain.exceptions import CapacityExceeded, TripNotFound
from src.domain.models import CapacityRecord

logger = logging.getLogger(__name__)

DEFAULT_TRIP_SEATS = 45


@dataclass(slots=True)
class _Seats:
    total: int
    booked: int = 0


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must not be negative: {value}")


@dataclass(slots=True)
class CapacityLedger:
    """In-memory seat counters per trip.

    Every mutation for a trip runs under that trip's lock, which makes
    reservations linearizable. Durable commits are the caller's job.
    """

    default_total_seats: int = DEFAULT_TRIP_SEATS

    _seats: dict[str, _Seats] = field(default_factory=dict, init=False, repr=False)
    _locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)

    def open_trip(self, trip_id: str, total_seats: int) -> CapacityRecord:
        _require_non_negative("total_seats", total_seats)
        with self._locks.hold(trip_id):
            self._seats[trip_id] = _Seats(total=total_seats)
            return CapacityRecord(trip_id, total_seats, 0)

    def load(self, trip_id: str, record: CapacityRecord | None) -> CapacityRecord:
        """Adopt a stored record, or the default capacity when there is none.

        An already-loaded trip keeps its in-memory counters.
        """

        with self._locks.hold(trip_id):
            current = self._seats.get(trip_id)
            if current is None:
                if record is None:
                    current = _Seats(total=self.default_total_seats)
                else:
                    _require_non_negative("total_seats", record.total_seats)
                    _require_non_negative("seats_booked", record.seats_booked)
                    current = _Seats(
                        total=record.total_seats, booked=record.seats_booked
                    )
                self._seats[trip_id] = current
            return CapacityRecord(trip_id, current.total, current.booked)

    def get(self, trip_id: str) -> CapacityRecord | None:
        with self._locks.hold(trip_id):
            current = self._seats.get(trip_id)
            if current is None:
                return None
            return CapacityRecord(trip_id, current.total, current.booked)

    def _require(self, trip_id: str) -> _Seats:
        current = self._seats.get(trip_id)
        if current is None:
            raise TripNotFound(f"No capacity record for trip {trip_id}")
        return current

    def reserve(self, trip_id: str, seats: int) -> CapacityRecord:
        if seats <= 0:
            raise ValueError(f"seats must be positive: {seats}")
        with self._locks.hold(trip_id):
            current = self._require(trip_id)
            if current.booked + seats > current.total:
                available = max(0, current.total - current.booked)
                raise CapacityExceeded(
                    f"Trip {trip_id} has {available} seat(s) available, "
                    f"{seats} requested"
                )
            current.booked += seats
            return CapacityRecord(trip_id, current.total, current.booked)

    def release(self, trip_id: str, seats: int) -> int:
        """Give seats back (floored at zero); returns the seats now available."""

        if seats <= 0:
            raise ValueError(f"seats must be positive: {seats}")
        with self._locks.hold(trip_id):
            current = self._require(trip_id)
            current.booked = max(0, current.booked - seats)
            return max(0, current.total - current.booked)

    def set_capacity(self, trip_id: str, total_seats: int) -> CapacityRecord:
        _require_non_negative("total_seats", total_seats)
        with self._locks.hold(trip_id):
            current = self._require(trip_id)
            current.total = total_seats
            record = CapacityRecord(trip_id, current.total, current.booked)

        if record.over_capacity:
            logger.warning(
                "Trip %s is over capacity: %d booked for %d seat(s)",
                trip_id,
                record.seats_booked,
                record.total_seats,
            )
        return record

    def close_trip(self, trip_id: str) -> CapacityRecord | None:
        with self._locks.hold(trip_id):
            current = self._seats.pop(trip_id, None)
            if current is None:
                return None
            return CapacityRecord(trip_id, current.total, current.booked)
