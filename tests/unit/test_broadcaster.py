from __future__ import annotations

import asyncio

import pytest

from fakes import FakeHistoryRepository
from src.app.services.broadcaster import Broadcaster
from src.app.services.live_connection import LiveConnection
from src.app.services.location_store import LocationStore
from src.app.services.subscription_registry import SubscriptionRegistry
from src.domain.exceptions import InvalidInput


def _broadcaster(**kwargs) -> Broadcaster:
    return Broadcaster(store=LocationStore(), registry=SubscriptionRegistry(), **kwargs)


def _report(**overrides):
    raw = {
        "vehicle_id": "V1",
        "route_id": "R1",
        "trip_id": "T1",
        "latitude": 6.7132,
        "longitude": 79.9033,
        "speed": 10.0,
    }
    raw.update(overrides)
    return raw


def _start_writer(conn: LiveConnection, inbox: list) -> asyncio.Task[None]:
    async def send(message) -> None:
        inbox.append(message)

    return asyncio.create_task(conn.run_writer(send))


def test_location_update_reaches_route_and_vehicle_subscribers_only() -> None:
    async def scenario():
        b = _broadcaster()
        inboxes: dict[str, list] = {}
        writers = []
        for connection_id, topics in {
            "route-rider": ["route:R1"],
            "vehicle-rider": ["vehicle:V1"],
            "other-route": ["route:R2"],
            "both": ["route:R1", "vehicle:V1"],
        }.items():
            conn = b.connect(connection_id)
            for topic in topics:
                b.subscribe(connection_id, topic)
            inboxes[connection_id] = []
            writers.append(_start_writer(conn, inboxes[connection_id]))

        event = b.on_location_update(_report())
        await b.aclose()
        await asyncio.gather(*writers)
        return event, inboxes

    event, inboxes = asyncio.run(scenario())

    assert len(inboxes["route-rider"]) == 1
    assert len(inboxes["vehicle-rider"]) == 1
    assert inboxes["other-route"] == []
    # Subscribed to both topics: the same event arrives twice.
    assert len(inboxes["both"]) == 2

    message = inboxes["route-rider"][0]
    assert message["type"] == "location"
    assert message["vehicle_id"] == "V1"
    assert message["route_id"] == "R1"
    assert message["speed_kmh"] == pytest.approx(36.0)
    assert message["heading"] is None
    assert event.speed_kmh == pytest.approx(36.0)


def test_heading_is_derived_from_previous_sample() -> None:
    async def scenario():
        b = _broadcaster()
        first = b.on_location_update(_report(latitude=6.7132))
        second = b.on_location_update(_report(latitude=6.7200))
        await b.aclose()
        return b, first, second

    b, first, second = asyncio.run(scenario())

    assert first.heading is None
    assert second.heading == pytest.approx(0.0)
    assert b.store.latest("V1").latitude == 6.72
    assert len(b.store.history("V1")) == 2


def test_invalid_report_changes_nothing() -> None:
    async def scenario():
        b = _broadcaster()
        conn = b.connect("c1")
        b.subscribe("c1", "vehicle:V1")
        with pytest.raises(InvalidInput):
            b.on_location_update(_report(latitude="north"))
        pending = conn.pending()
        await b.aclose()
        return b, pending

    b, pending = asyncio.run(scenario())

    assert pending == 0
    assert b.store.latest("V1") is None


def test_history_persistence_failure_is_swallowed() -> None:
    failing = FakeHistoryRepository(fail=True)
    working = FakeHistoryRepository()

    async def scenario(repo):
        b = _broadcaster(history_repository=repo)
        event = b.on_location_update(_report())
        await b.aclose()
        return b, event

    b, event = asyncio.run(scenario(failing))
    assert event.vehicle_id == "V1"
    assert b.store.latest("V1") is not None

    asyncio.run(scenario(working))
    assert [s.vehicle_id for s in working.samples] == ["V1"]


def test_slow_subscriber_does_not_delay_others() -> None:
    async def scenario():
        b = _broadcaster(send_timeout_s=0.05)
        fast = b.connect("fast")
        slow = b.connect("slow")
        b.subscribe("fast", "route:R1")
        b.subscribe("slow", "route:R1")

        got_it = asyncio.Event()

        async def fast_send(message) -> None:
            got_it.set()

        async def slow_send(message) -> None:
            await asyncio.sleep(10)

        writers = [
            asyncio.create_task(fast.run_writer(fast_send)),
            asyncio.create_task(slow.run_writer(slow_send)),
        ]
        b.on_location_update(_report())
        await asyncio.wait_for(got_it.wait(), timeout=1.0)

        await b.aclose()
        await asyncio.wait_for(asyncio.gather(*writers), timeout=1.0)
        return slow.dropped

    assert asyncio.run(scenario()) == 1


def test_full_queue_drops_oldest_message() -> None:
    async def scenario():
        conn = LiveConnection("c1", queue_size=2)
        for n in range(3):
            conn.offer({"n": n})
        pending = conn.pending()
        inbox: list = []
        writer = _start_writer(conn, inbox)
        conn.close()
        await writer
        return conn, pending, inbox

    conn, pending, inbox = asyncio.run(scenario())

    assert pending == 2
    assert conn.dropped == 1
    assert [m["n"] for m in inbox] == [1, 2]
    assert conn.offer({"n": 9}) is False


def test_disconnect_drops_subscriptions() -> None:
    async def scenario():
        b = _broadcaster()
        b.connect("c1")
        b.subscribe("c1", "route:R1")
        b.subscribe("c1", "vehicle:V1")
        b.disconnect("c1")
        delivered = b.publish("route:R1", {"type": "ping"})
        await b.aclose()
        return b, delivered

    b, delivered = asyncio.run(scenario())

    assert delivered == 0
    assert b.registry.topics_of("c1") == frozenset()


def test_connect_rejects_duplicate_connection_ids() -> None:
    b = _broadcaster()
    b.connect("c1")
    with pytest.raises(ValueError):
        b.connect("c1")


def test_failing_send_closes_connection() -> None:
    async def scenario():
        conn = LiveConnection("c1")

        async def broken_send(message) -> None:
            raise RuntimeError("socket gone")

        conn.offer({"n": 1})
        conn.offer({"n": 2})
        await asyncio.wait_for(conn.run_writer(broken_send), timeout=1.0)
        return conn

    conn = asyncio.run(scenario())

    assert conn.closed is True
    assert conn.offer({"n": 3}) is False
