from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from src.domain.algorithms.geo_utils import haversine_distance_m
from src.domain.models import GeoPoint, NearbyVehicle, VehicleSample

DEFAULT_HISTORY_SIZE = 100


@dataclass(slots=True)
class _VehicleTrack:
    history: deque[VehicleSample]
    lock: threading.Lock = field(default_factory=threading.Lock)
    tracking: bool = True


@dataclass(slots=True)
class LocationStore:
    """Latest position and bounded recent history per vehicle.

    Each vehicle has its own lock, so writers for different vehicles never
    contend; the store-wide guard is only taken to create a vehicle's track.
    """

    history_size: int = DEFAULT_HISTORY_SIZE

    _tracks: dict[str, _VehicleTrack] = field(
        default_factory=dict, init=False, repr=False
    )
    _guard: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.history_size < 1:
            raise ValueError(f"history_size must be positive: {self.history_size}")

    def _track(self, vehicle_id: str) -> _VehicleTrack | None:
        return self._tracks.get(vehicle_id)

    def _ensure_track(self, vehicle_id: str) -> _VehicleTrack:
        track = self._tracks.get(vehicle_id)
        if track is not None:
            return track
        with self._guard:
            track = self._tracks.get(vehicle_id)
            if track is None:
                track = _VehicleTrack(history=deque(maxlen=self.history_size))
                self._tracks[vehicle_id] = track
            return track

    def record_sample(self, sample: VehicleSample) -> None:
        self.record_with(sample.vehicle_id, lambda _previous: sample)

    def record_with(
        self,
        vehicle_id: str,
        build: Callable[[VehicleSample | None], VehicleSample],
    ) -> VehicleSample:
        """Build the next sample from the previous one and store it atomically."""

        track = self._ensure_track(vehicle_id)
        with track.lock:
            previous = track.history[-1] if track.history else None
            sample = build(previous)
            track.history.append(sample)
            track.tracking = True
            return sample

    def latest(self, vehicle_id: str) -> VehicleSample | None:
        track = self._track(vehicle_id)
        if track is None:
            return None
        with track.lock:
            return track.history[-1] if track.history else None

    def history(
        self, vehicle_id: str, limit: int = DEFAULT_HISTORY_SIZE
    ) -> tuple[VehicleSample, ...]:
        """Up to `limit` most recent samples, newest first."""

        track = self._track(vehicle_id)
        if track is None or limit <= 0:
            return ()
        with track.lock:
            snapshot = list(track.history)
        snapshot.reverse()
        return tuple(snapshot[:limit])

    def stop_tracking(self, vehicle_id: str) -> bool:
        """Mark a vehicle inactive until it reports again. History is kept."""

        track = self._track(vehicle_id)
        if track is None:
            return False
        with track.lock:
            track.tracking = False
        return True

    def _fresh_latest(
        self, freshness: timedelta, now: datetime | None
    ) -> Iterable[VehicleSample]:
        cutoff = (now or datetime.now(timezone.utc)) - freshness
        for track in list(self._tracks.values()):
            with track.lock:
                if not track.tracking or not track.history:
                    continue
                sample = track.history[-1]
            if sample.captured_at >= cutoff:
                yield sample

    def nearby(
        self,
        point: GeoPoint,
        radius_m: float,
        freshness: timedelta,
        *,
        now: datetime | None = None,
    ) -> tuple[NearbyVehicle, ...]:
        out: list[NearbyVehicle] = []
        for sample in self._fresh_latest(freshness, now):
            d = haversine_distance_m(point, sample.position)
            if d <= radius_m:
                out.append(NearbyVehicle(sample=sample, distance_m=d))
        out.sort(key=lambda n: n.distance_m)
        return tuple(out)

    def active_vehicles(
        self,
        route_ids: Iterable[str],
        freshness: timedelta,
        *,
        now: datetime | None = None,
    ) -> tuple[VehicleSample, ...]:
        """Latest samples of tracking vehicles last seen on one of `route_ids`."""

        wanted = set(route_ids)
        if not wanted:
            return ()
        return tuple(
            s for s in self._fresh_latest(freshness, now) if s.route_id in wanted
        )
