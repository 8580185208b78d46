from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass

import pytest

from fakes import FakeBookingRepository
from src.app.services.booking_service import BookingService
from src.app.services.broadcaster import Broadcaster
from src.app.services.capacity_ledger import CapacityLedger
from src.app.services.location_store import LocationStore
from src.app.services.subscription_registry import SubscriptionRegistry
from src.domain.exceptions import (
    BookingNotFound,
    CapacityExceeded,
    InvalidInput,
    TripNotFound,
    UpstreamUnavailable,
)
from src.domain.models import (
    BookingStatus,
    ById,
    ByReference,
    CapacityRecord,
    Trip,
    TripStatus,
    TripStop,
)


def _trip(trip_id: str = "T1", status: TripStatus = TripStatus.ACTIVE) -> Trip:
    return Trip(
        trip_id=trip_id,
        route_id="R1",
        vehicle_id="V1",
        driver_id="D1",
        status=status,
        base_fare=50.0,
        fare_per_km=10.0,
        distance_km=20.0,
        stops=tuple(TripStop(stop_id=f"S{i}", sequence=i) for i in range(1, 6)),
    )


def _service(repo: FakeBookingRepository, broadcaster: Broadcaster | None = None):
    return BookingService(
        ledger=CapacityLedger(), booking_repository=repo, broadcaster=broadcaster
    )


def _book(service: BookingService, **overrides):
    kwargs = {
        "trip_id": "T1",
        "pickup_stop_id": "S1",
        "dropoff_stop_id": "S3",
        "passenger_name": "Nimal",
        "passenger_phone": "+94770000000",
        "passengers": 2,
    }
    kwargs.update(overrides)
    return asyncio.run(service.create_booking(**kwargs))


def test_create_booking_prices_reserves_and_persists() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)

    booking, quote = _book(service)

    assert quote.total_fare == pytest.approx(300.0)
    assert booking.fare_amount == pytest.approx(300.0)
    assert booking.status is BookingStatus.CONFIRMED
    assert booking.reference.startswith("BK")
    assert repo.bookings[booking.booking_id] == booking

    seats = asyncio.run(service.available_seats("T1"))
    assert seats.total_seats == 45
    assert seats.seats_available == 43


def test_create_booking_uses_stored_capacity() -> None:
    repo = FakeBookingRepository(
        trips={"T1": _trip()},
        capacities={"T1": CapacityRecord(trip_id="T1", total_seats=10, seats_booked=8)},
    )
    service = _service(repo)

    with pytest.raises(CapacityExceeded):
        _book(service, passengers=5)

    assert repo.bookings == {}
    assert service.ledger.get("T1").seats_booked == 8


def test_failed_persist_releases_reserved_seats() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()}, fail_persist=True)
    service = _service(repo)

    with pytest.raises(UpstreamUnavailable):
        _book(service)

    assert service.ledger.get("T1").seats_booked == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"pickup_stop_id": "S3", "dropoff_stop_id": "S1"},
        {"pickup_stop_id": "S2", "dropoff_stop_id": "S2"},
        {"dropoff_stop_id": "S9"},
        {"passengers": 0},
    ],
)
def test_create_booking_rejects_bad_requests(overrides) -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)

    with pytest.raises(InvalidInput):
        _book(service, **overrides)
    assert repo.bookings == {}


def test_create_booking_requires_active_trip() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip(status=TripStatus.COMPLETED)})

    with pytest.raises(InvalidInput):
        _book(_service(repo))
    with pytest.raises(TripNotFound):
        _book(_service(repo), trip_id="T404")


def test_driver_is_notified_of_new_booking() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    broadcaster = Broadcaster(store=LocationStore(), registry=SubscriptionRegistry())
    driver = broadcaster.connect("driver-app")
    broadcaster.subscribe("driver-app", "driver:D1")

    booking, _ = _book(_service(repo, broadcaster))

    assert driver.pending() == 1
    message = driver._queue.get_nowait()
    assert message["type"] == "booking"
    assert message["reference"] == booking.reference
    assert message["number_of_passengers"] == 2


def test_cancel_booking_releases_seats_once() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)
    booking, _ = _book(service)

    cancelled, available = asyncio.run(
        service.cancel_booking(ByReference(booking.reference))
    )
    again, available_again = asyncio.run(
        service.cancel_booking(ById(booking.booking_id))
    )

    assert cancelled.status is BookingStatus.CANCELLED
    assert available == 45
    assert again.status is BookingStatus.CANCELLED
    assert available_again == 45
    assert repo.cancellations == [booking.booking_id]


@dataclass(slots=True)
class _LockstepBookingRepository(FakeBookingRepository):
    """Holds each booking lookup until every party of `barrier` has read it."""

    barrier: threading.Barrier | None = None

    def get_booking(self, key):
        booking = FakeBookingRepository.get_booking(self, key)
        if self.barrier is not None:
            self.barrier.wait()
        return booking


def test_concurrent_cancels_release_seats_once() -> None:
    repo = _LockstepBookingRepository(trips={"T1": _trip()})
    service = _service(repo)
    first, _ = _book(service)
    _book(service)
    repo.barrier = threading.Barrier(2, timeout=5)

    async def cancel_twice():
        return await asyncio.gather(
            service.cancel_booking(ById(first.booking_id)),
            service.cancel_booking(ByReference(first.reference)),
        )

    results = asyncio.run(cancel_twice())

    assert [b.status for b, _ in results] == [BookingStatus.CANCELLED] * 2
    assert service.ledger.get("T1").seats_booked == 2
    assert repo.cancellations == [first.booking_id]


def test_unknown_booking_is_not_found() -> None:
    service = _service(FakeBookingRepository())

    with pytest.raises(BookingNotFound):
        asyncio.run(service.get_booking(ById(999)))


def test_set_capacity_persists_and_keeps_bookings() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)
    _book(service, passengers=3)

    record = asyncio.run(service.set_capacity("T1", 2))

    assert record.over_capacity
    assert repo.capacities["T1"] == record
    with pytest.raises(InvalidInput):
        asyncio.run(service.set_capacity("T1", -1))


def _start(service: BookingService, **overrides):
    kwargs = {
        "route_id": "R2",
        "vehicle_id": "V7",
        "driver_id": "D7",
        "stops": [TripStop("S3", 2), TripStop("S1", 1), TripStop("S5", 3)],
        "base_fare": 40.0,
        "fare_per_km": 8.0,
        "distance_km": 12.0,
        "total_seats": 30,
    }
    kwargs.update(overrides)
    return asyncio.run(service.start_trip(**kwargs))


def test_start_trip_persists_and_opens_capacity() -> None:
    repo = FakeBookingRepository()
    service = _service(repo)

    trip, record = _start(service)

    assert trip.status is TripStatus.ACTIVE
    assert [s.stop_id for s in trip.stops] == ["S1", "S3", "S5"]
    assert trip.started_at is not None
    assert repo.trips[trip.trip_id] == trip
    assert repo.capacities[trip.trip_id] == record
    assert record.total_seats == 30
    assert service.ledger.get(trip.trip_id) == record

    booking, _ = _book(
        service, trip_id=trip.trip_id, pickup_stop_id="S1", dropoff_stop_id="S5"
    )
    assert booking.route_id == "R2"


def test_start_trip_defaults_to_ledger_capacity() -> None:
    service = _service(FakeBookingRepository())

    _, record = _start(service, total_seats=None, driver_id=None)

    assert record.total_seats == service.ledger.default_total_seats


def test_driver_cannot_start_a_second_active_trip() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)

    with pytest.raises(InvalidInput):
        _start(service, driver_id="D1")
    assert list(repo.trips) == ["T1"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"route_id": ""},
        {"stops": [TripStop("S1", 1)]},
        {"stops": [TripStop("S1", 1), TripStop("S1", 2)]},
        {"stops": [TripStop("S1", 1), TripStop("S2", 1)]},
        {"base_fare": -1.0},
        {"distance_km": float("nan")},
        {"total_seats": -5},
    ],
)
def test_start_trip_rejects_bad_requests(overrides) -> None:
    repo = FakeBookingRepository()

    with pytest.raises(InvalidInput):
        _start(_service(repo), **overrides)
    assert repo.trips == {}


def test_end_trip_completes_and_closes_bookings() -> None:
    repo = FakeBookingRepository(trips={"T1": _trip()})
    service = _service(repo)
    _book(service)

    ended = asyncio.run(service.end_trip("T1"))
    again = asyncio.run(service.end_trip("T1"))

    assert ended.status is TripStatus.COMPLETED
    assert again.status is TripStatus.COMPLETED
    assert repo.trips["T1"].status is TripStatus.COMPLETED
    assert service.ledger.get("T1") is None
    with pytest.raises(InvalidInput):
        _book(service)
    with pytest.raises(TripNotFound):
        asyncio.run(service.end_trip("T404"))

    # The driver is free to start the next trip.
    trip, _ = _start(service, driver_id="D1")
    assert trip.driver_id == "D1"
