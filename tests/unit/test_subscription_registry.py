from __future__ import annotations

import threading

import pytest

from src.app.services.subscription_registry import SubscriptionRegistry
from src.domain.exceptions import InvalidInput
from src.domain.models import Topic


def test_join_and_leave_are_idempotent() -> None:
    registry = SubscriptionRegistry()

    assert registry.join("c1", "route:R1") is True
    assert registry.join("c1", Topic.route("R1")) is False
    assert registry.subscribers_of("route:R1") == frozenset({"c1"})

    assert registry.leave("c1", "route:R1") is True
    assert registry.leave("c1", "route:R1") is False
    assert registry.subscribers_of("route:R1") == frozenset()
    assert registry.topics_of("c1") == frozenset()


def test_subscribers_of_returns_a_snapshot() -> None:
    registry = SubscriptionRegistry()
    registry.join("c1", "vehicle:V1")

    snapshot = registry.subscribers_of("vehicle:V1")
    registry.join("c2", "vehicle:V1")

    assert snapshot == frozenset({"c1"})
    assert registry.subscribers_of("vehicle:V1") == frozenset({"c1", "c2"})


def test_drop_connection_removes_every_subscription() -> None:
    registry = SubscriptionRegistry()
    topics = [f"route:R{i}" for i in range(50)]
    for topic in topics:
        registry.join("c1", topic)
    registry.join("c2", "route:R0")

    assert registry.drop_connection("c1") == 50

    for topic in topics:
        assert "c1" not in registry.subscribers_of(topic)
    assert registry.subscribers_of("route:R0") == frozenset({"c2"})
    assert registry.topics_of("c1") == frozenset()
    assert registry.drop_connection("c1") == 0


@pytest.mark.parametrize("topic", ["", "route", "route:", "bus:12", ":R1"])
def test_rejects_unknown_topic_shapes(topic: str) -> None:
    registry = SubscriptionRegistry()
    with pytest.raises(InvalidInput):
        registry.join("c1", topic)


def test_concurrent_joins_and_drops_leave_no_stale_members() -> None:
    registry = SubscriptionRegistry()

    def churn(connection_id: str) -> None:
        for i in range(100):
            registry.join(connection_id, f"route:R{i % 10}")
        registry.drop_connection(connection_id)

    threads = [threading.Thread(target=churn, args=(f"c{n}",)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    for i in range(10):
        assert registry.subscribers_of(f"route:R{i}") == frozenset()
