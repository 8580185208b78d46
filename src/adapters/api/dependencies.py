from __future__ import annotations

import os
from dataclasses import dataclass

from fastapi.requests import HTTPConnection

from src.adapters.persistence import (
    DynamoDbBookingRepository,
    DynamoDbLocationHistoryRepository,
    LocalGtfsTransitRepository,
)
from src.adapters.realtime.http_gtfs_realtime_feed_provider import (
    HttpGtfsRealtimeFeedProvider,
)
from src.adapters.settings import TrackingSettings
from src.app.services.booking_service import BookingService
from src.app.services.broadcaster import Broadcaster
from src.app.services.capacity_ledger import CapacityLedger
from src.app.services.eta_service import EtaService
from src.app.services.feed_ingestion_service import FeedIngestionService
from src.app.services.location_store import LocationStore
from src.app.services.subscription_registry import SubscriptionRegistry


@dataclass(slots=True)
class TrackingContainer:
    """Every long-lived service of one app instance, wired explicitly."""

    settings: TrackingSettings
    store: LocationStore
    registry: SubscriptionRegistry
    broadcaster: Broadcaster
    eta_service: EtaService
    ledger: CapacityLedger
    booking_service: BookingService
    feed_ingestion: FeedIngestionService | None = None


def build_container(settings: TrackingSettings | None = None) -> TrackingContainer:
    settings = settings or TrackingSettings.from_env()

    store = LocationStore(history_size=settings.history_size)
    registry = SubscriptionRegistry()
    broadcaster = Broadcaster(
        store=store,
        registry=registry,
        history_repository=(
            DynamoDbLocationHistoryRepository() if settings.persist_history else None
        ),
        queue_size=settings.live_queue_size,
        send_timeout_s=settings.live_send_timeout_s,
    )
    ledger = CapacityLedger(default_total_seats=settings.default_trip_seats)

    feed_ingestion = None
    if os.getenv("GTFS_RT_VEHICLE_POSITIONS_URL"):
        feed_ingestion = FeedIngestionService(
            provider=HttpGtfsRealtimeFeedProvider(),
            broadcaster=broadcaster,
            poll_interval_s=settings.feed_poll_s,
        )

    return TrackingContainer(
        settings=settings,
        store=store,
        registry=registry,
        broadcaster=broadcaster,
        eta_service=EtaService(
            store=store,
            transit_repository=LocalGtfsTransitRepository(),
            active_window_s=settings.freshness_s,
        ),
        ledger=ledger,
        booking_service=BookingService(
            ledger=ledger,
            booking_repository=DynamoDbBookingRepository(),
            broadcaster=broadcaster,
        ),
        feed_ingestion=feed_ingestion,
    )


def get_container(conn: HTTPConnection) -> TrackingContainer:
    return conn.app.state.container


def get_settings(conn: HTTPConnection) -> TrackingSettings:
    return get_container(conn).settings


def get_location_store(conn: HTTPConnection) -> LocationStore:
    return get_container(conn).store


def get_broadcaster(conn: HTTPConnection) -> Broadcaster:
    return get_container(conn).broadcaster


def get_eta_service(conn: HTTPConnection) -> EtaService:
    return get_container(conn).eta_service


def get_booking_service(conn: HTTPConnection) -> BookingService:
    return get_container(conn).booking_service
