from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from google.transit import gtfs_realtime_pb2

from src.adapters.realtime.http_gtfs_realtime_feed_provider import (
    parse_vehicle_positions,
)
from src.app.ports.output import IVehicleFeedProvider
from src.app.services.broadcaster import Broadcaster
from src.app.services.feed_ingestion_service import FeedIngestionService
from src.app.services.location_store import LocationStore
from src.app.services.subscription_registry import SubscriptionRegistry
from src.domain.models.feed import FeedVehicle

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


class _FakeProvider(IVehicleFeedProvider):
    def __init__(self, vehicles: tuple[FeedVehicle, ...]) -> None:
        self.vehicles = vehicles

    async def list_vehicles(self) -> tuple[FeedVehicle, ...]:
        return self.vehicles


def _vehicle(vehicle_id, lat=28.1, lon=-15.4, ts=T0, speed=5.0) -> FeedVehicle:
    return FeedVehicle(
        vehicle_id=vehicle_id,
        trip_id="T1",
        route_id="R1",
        lat=lat,
        lon=lon,
        speed_mps=speed,
        timestamp=ts,
    )


def test_poll_once_feeds_new_positions_into_broadcaster() -> None:
    broadcaster = Broadcaster(store=LocationStore(), registry=SubscriptionRegistry())
    provider = _FakeProvider((_vehicle("V1"), _vehicle(None), _vehicle("V2")))
    service = FeedIngestionService(provider=provider, broadcaster=broadcaster)

    async def scenario():
        first = await service.poll_once()
        # Same fixes again: nothing new.
        repeated = await service.poll_once()
        provider.vehicles = (_vehicle("V1", lat=28.2, ts=T0 + timedelta(seconds=30)),)
        moved = await service.poll_once()
        await broadcaster.aclose()
        return first, repeated, moved

    assert asyncio.run(scenario()) == (2, 0, 1)

    latest = broadcaster.store.latest("V1")
    assert latest.latitude == 28.2
    assert latest.speed_kmh == pytest.approx(18.0)
    assert latest.heading == 0.0
    assert len(broadcaster.store.history("V1")) == 2


def test_poll_once_skips_invalid_vehicles() -> None:
    broadcaster = Broadcaster(store=LocationStore(), registry=SubscriptionRegistry())
    provider = _FakeProvider((_vehicle("V1", speed=-3.0), _vehicle("V2")))
    service = FeedIngestionService(provider=provider, broadcaster=broadcaster)

    async def scenario():
        accepted = await service.poll_once()
        await broadcaster.aclose()
        return accepted

    assert asyncio.run(scenario()) == 1
    assert broadcaster.store.latest("V1") is None


def test_parse_vehicle_positions_reads_gtfs_realtime_feed() -> None:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"

    ent = feed.entity.add()
    ent.id = "e1"
    ent.vehicle.vehicle.id = "bus-12"
    ent.vehicle.trip.trip_id = "T1"
    ent.vehicle.trip.route_id = "R1"
    ent.vehicle.position.latitude = 28.1
    ent.vehicle.position.longitude = -15.4
    ent.vehicle.position.speed = 4.0
    ent.vehicle.timestamp = int(T0.timestamp())

    no_position = feed.entity.add()
    no_position.id = "e2"
    no_position.vehicle.vehicle.id = "bus-13"

    vehicles = parse_vehicle_positions(feed.SerializeToString())

    assert len(vehicles) == 1
    v = vehicles[0]
    assert v.vehicle_id == "bus-12"
    assert v.route_id == "R1"
    assert v.speed_mps == 4.0
    assert v.timestamp == T0
