from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from src.app.ports.output import ILocationHistoryRepository
from src.app.services.live_connection import LiveConnection, Message
from src.app.services.location_store import LocationStore
from src.app.services.subscription_registry import SubscriptionRegistry
from src.domain.algorithms.geo_utils import heading_degrees
from src.domain.models import LocationEvent, LocationReport, Topic, VehicleSample

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Broadcaster:
    """Ingests location reports and fans them out to subscribed connections.

    Must be driven from the event loop thread. `on_location_update` does not
    await between recording a sample and queueing it for subscribers, so
    reports for one vehicle are stored and broadcast in arrival order.
    """

    store: LocationStore
    registry: SubscriptionRegistry
    history_repository: ILocationHistoryRepository | None = None
    queue_size: int = 100
    send_timeout_s: float = 5.0

    _connections: dict[str, LiveConnection] = field(
        default_factory=dict, init=False, repr=False
    )
    _pending_writes: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    # Connection lifecycle

    def connect(self, connection_id: str) -> LiveConnection:
        if connection_id in self._connections:
            raise ValueError(f"Connection already registered: {connection_id}")
        conn = LiveConnection(
            connection_id=connection_id,
            queue_size=self.queue_size,
            send_timeout_s=self.send_timeout_s,
        )
        self._connections[connection_id] = conn
        logger.info("Live connection %s opened", connection_id)
        return conn

    def disconnect(self, connection_id: str) -> None:
        self.registry.drop_connection(connection_id)
        conn = self._connections.pop(connection_id, None)
        if conn is not None:
            conn.close()
            logger.info(
                "Live connection %s closed (%d message(s) dropped)",
                connection_id,
                conn.dropped,
            )

    def subscribe(self, connection_id: str, topic: Topic | str) -> Topic:
        parsed = topic if isinstance(topic, Topic) else Topic.parse(topic)
        self.registry.join(connection_id, parsed)
        return parsed

    def unsubscribe(self, connection_id: str, topic: Topic | str) -> Topic:
        parsed = topic if isinstance(topic, Topic) else Topic.parse(topic)
        self.registry.leave(connection_id, parsed)
        return parsed

    # Publishing

    def publish(self, topic: Topic | str, message: Message) -> int:
        """Queue `message` for every subscriber of `topic`; returns how many."""

        delivered = 0
        for connection_id in self.registry.subscribers_of(topic):
            conn = self._connections.get(connection_id)
            if conn is not None and conn.offer(message):
                delivered += 1
        return delivered

    def on_location_update(self, raw: Mapping[str, Any]) -> LocationEvent:
        report = LocationReport.parse(raw)

        def _next_sample(previous: VehicleSample | None) -> VehicleSample:
            heading = None
            if previous is not None:
                heading = heading_degrees(previous.position, report.position)
            return VehicleSample(
                vehicle_id=report.vehicle_id,
                position=report.position,
                speed_kmh=report.speed_kmh,
                captured_at=report.timestamp,
                heading=heading,
                accuracy=report.accuracy,
                trip_id=report.trip_id,
                route_id=report.route_id,
            )

        sample = self.store.record_with(report.vehicle_id, _next_sample)
        event = LocationEvent.from_sample(sample)
        message = event.to_message()

        delivered = 0
        if sample.route_id:
            delivered += self.publish(Topic.route(sample.route_id), message)
        delivered += self.publish(Topic.vehicle(sample.vehicle_id), message)
        logger.debug(
            "Location for %s queued to %d subscriber(s)", sample.vehicle_id, delivered
        )

        self._persist(sample)
        return event

    def _persist(self, sample: VehicleSample) -> None:
        if self.history_repository is None:
            return
        task = asyncio.get_running_loop().create_task(
            asyncio.to_thread(self.history_repository.persist_location_sample, sample)
        )
        self._pending_writes.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Task[None]) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Failed to persist location sample", exc_info=exc)

    async def aclose(self) -> None:
        """Close every connection and wait for in-flight history writes."""

        for connection_id in list(self._connections):
            self.disconnect(connection_id)
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)
