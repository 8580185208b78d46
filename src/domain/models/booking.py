from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from src.domain.exceptions import InvalidInput

REFERENCE_PREFIX = "BK"
_BASE36 = string.digits + string.ascii_uppercase


class TripStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class TripStop:
    stop_id: str
    sequence: int


@dataclass(frozen=True, slots=True)
class Trip:
    trip_id: str
    route_id: str
    vehicle_id: str
    driver_id: str | None
    status: TripStatus
    base_fare: float
    fare_per_km: float
    distance_km: float
    stops: tuple[TripStop, ...] = ()
    started_at: datetime | None = None

    def sequence_of(self, stop_id: str) -> int | None:
        for s in self.stops:
            if s.stop_id == stop_id:
                return s.sequence
        return None


@dataclass(frozen=True, slots=True)
class Booking:
    booking_id: int
    reference: str
    trip_id: str
    route_id: str
    vehicle_id: str
    passenger_name: str
    passenger_phone: str
    pickup_stop_id: str
    dropoff_stop_id: str
    passengers: int
    fare_amount: float
    status: BookingStatus
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ById:
    booking_id: int


@dataclass(frozen=True, slots=True)
class ByReference:
    reference: str


BookingKey = Union[ById, ByReference]


def parse_booking_key(raw: str) -> BookingKey:
    """Resolve a path/query value into a booking key once, at the boundary."""

    value = (raw or "").strip()
    if not value:
        raise InvalidInput("Missing booking id")
    if value.upper().startswith(REFERENCE_PREFIX):
        return ByReference(value.upper())
    if value.isdigit():
        return ById(int(value))
    raise InvalidInput(f"Invalid booking id: {raw!r}")


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_BASE36[r])
    return "".join(reversed(out))


def new_booking_reference(now_ms: int | None = None) -> str:
    ts = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(random.choices(_BASE36, k=4))
    return f"{REFERENCE_PREFIX}{_to_base36(ts)}{suffix}"
