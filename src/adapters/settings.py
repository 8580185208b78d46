from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True, slots=True)
class TrackingSettings:
    """Runtime tuning for the tracking core, read from the environment."""

    history_size: int = 100
    nearby_radius_m: float = 5000.0
    freshness_s: float = 600.0
    live_queue_size: int = 100
    live_send_timeout_s: float = 5.0
    default_trip_seats: int = 45
    feed_poll_s: float = 15.0
    persist_history: bool = True

    @staticmethod
    def from_env() -> "TrackingSettings":
        return TrackingSettings(
            history_size=_env_int("LOCATION_HISTORY_SIZE", 100),
            nearby_radius_m=_env_float("NEARBY_RADIUS_M", 5000.0),
            freshness_s=_env_float("NEARBY_FRESHNESS_S", 600.0),
            live_queue_size=_env_int("LIVE_QUEUE_SIZE", 100),
            live_send_timeout_s=_env_float("LIVE_SEND_TIMEOUT_S", 5.0),
            default_trip_seats=_env_int("DEFAULT_TRIP_SEATS", 45),
            feed_poll_s=_env_float("GTFS_RT_POLL_S", 15.0),
            persist_history=_env_bool("PERSIST_LOCATION_HISTORY", True),
        )
