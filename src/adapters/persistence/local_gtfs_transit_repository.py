from __future__ import annotations

import csv
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

from src.app.ports.output import ITransitRepository
from src.domain.exceptions import UpstreamUnavailable
from src.domain.models import GeoPoint, RouteStop, Stop


@dataclass(frozen=True, slots=True)
class _Topology:
    stops_by_id: dict[str, Stop]
    route_stops: dict[str, tuple[RouteStop, ...]]
    routes_by_stop: dict[str, frozenset[str]]


@dataclass(slots=True)
class LocalGtfsTransitRepository(ITransitRepository):
    """Serves stops and route stop order from a directory of GTFS .txt files.

    A route's stop order is taken from its longest trip. The files are read
    once and kept in memory.

    Env vars:
      - GTFS_PATH: directory containing stops.txt, trips.txt, stop_times.txt
    """

    base_path: str | Path | None = None

    _topology: _Topology | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def _base(self) -> Path:
        value = self.base_path or os.getenv("GTFS_PATH") or "data/gtfs"
        return Path(value)

    def get_stop(self, stop_id: str) -> Stop | None:
        return self._load().stops_by_id.get(stop_id)

    def get_route_stops(self, route_id: str) -> tuple[RouteStop, ...]:
        return self._load().route_stops.get(route_id, ())

    def routes_serving_stop(self, stop_id: str) -> frozenset[str]:
        return self._load().routes_by_stop.get(stop_id, frozenset())

    def _load(self) -> _Topology:
        if self._topology is not None:
            return self._topology
        with self._lock:
            if self._topology is None:
                try:
                    self._topology = _read_topology(self._base())
                except OSError as exc:
                    raise UpstreamUnavailable(f"GTFS data unavailable: {exc}") from exc
            return self._topology


def _read_topology(base: Path) -> _Topology:
    stops_by_id: dict[str, Stop] = {}
    with (base / "stops.txt").open("r", encoding="utf-8", newline="") as fp:
        for row in csv.DictReader(fp):
            stop_id = (row.get("stop_id") or "").strip()
            if not stop_id:
                continue
            try:
                location = GeoPoint(
                    lat=float(row["stop_lat"]), lon=float(row["stop_lon"])
                )
            except (TypeError, ValueError, KeyError):
                continue
            name = (row.get("stop_name") or stop_id).strip()
            stops_by_id[stop_id] = Stop(id=stop_id, name=name, location=location)

    route_by_trip: dict[str, str] = {}
    with (base / "trips.txt").open("r", encoding="utf-8", newline="") as fp:
        for row in csv.DictReader(fp):
            trip_id = (row.get("trip_id") or "").strip()
            route_id = (row.get("route_id") or "").strip()
            if trip_id and route_id:
                route_by_trip[trip_id] = route_id

    stop_times_by_trip: dict[str, list[tuple[int, str]]] = {}
    with (base / "stop_times.txt").open("r", encoding="utf-8", newline="") as fp:
        for row in csv.DictReader(fp):
            trip_id = (row.get("trip_id") or "").strip()
            stop_id = (row.get("stop_id") or "").strip()
            if not trip_id or not stop_id or stop_id not in stops_by_id:
                continue
            try:
                seq = int(row.get("stop_sequence") or 0)
            except ValueError:
                continue
            stop_times_by_trip.setdefault(trip_id, []).append((seq, stop_id))

    longest: dict[str, list[tuple[int, str]]] = {}
    routes_by_stop: dict[str, set[str]] = {}
    for trip_id, entries in stop_times_by_trip.items():
        route_id = route_by_trip.get(trip_id)
        if route_id is None:
            continue
        for _, stop_id in entries:
            routes_by_stop.setdefault(stop_id, set()).add(route_id)
        if len(entries) > len(longest.get(route_id, ())):
            longest[route_id] = entries

    route_stops: dict[str, tuple[RouteStop, ...]] = {}
    for route_id, entries in longest.items():
        entries.sort(key=lambda x: x[0])
        route_stops[route_id] = tuple(
            RouteStop(stop=stops_by_id[stop_id], sequence=seq)
            for seq, stop_id in entries
        )

    return _Topology(
        stops_by_id=stops_by_id,
        route_stops=route_stops,
        routes_by_stop={k: frozenset(v) for k, v in routes_by_stop.items()},
    )
