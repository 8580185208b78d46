from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from src.domain.exceptions import InvalidInput

from .geo import GeoPoint

MPS_TO_KMH = 3.6


@dataclass(frozen=True, slots=True)
class VehicleSample:
    """One GPS report for a vehicle. Speed is km/h, heading degrees from north."""

    vehicle_id: str
    position: GeoPoint
    speed_kmh: float
    captured_at: datetime
    heading: float | None = None
    accuracy: float | None = None
    trip_id: str | None = None
    route_id: str | None = None

    @property
    def latitude(self) -> float:
        return self.position.lat

    @property
    def longitude(self) -> float:
        return self.position.lon


@dataclass(frozen=True, slots=True)
class NearbyVehicle:
    sample: VehicleSample
    distance_m: float


@dataclass(frozen=True, slots=True)
class LocationReport:
    """A validated inbound report, as sent by a driver client (speed in m/s)."""

    vehicle_id: str
    position: GeoPoint
    speed_mps: float
    timestamp: datetime
    trip_id: str | None = None
    route_id: str | None = None
    accuracy: float | None = None

    @property
    def speed_kmh(self) -> float:
        return self.speed_mps * MPS_TO_KMH

    @classmethod
    def parse(cls, raw: Mapping[str, Any]) -> "LocationReport":
        """Validate a raw report mapping; raises InvalidInput on any bad field."""

        vehicle_id = _optional_id(raw.get("vehicle_id"))
        if vehicle_id is None:
            raise InvalidInput("Missing vehicle_id")

        lat = _number(raw.get("latitude"), "latitude")
        lon = _number(raw.get("longitude"), "longitude")
        if lat is None or lon is None:
            raise InvalidInput("Missing latitude or longitude")
        try:
            position = GeoPoint(lat=lat, lon=lon)
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc

        speed = _number(raw.get("speed"), "speed")
        if speed is None:
            speed = 0.0
        if speed < 0:
            raise InvalidInput(f"Negative speed: {speed}")

        accuracy = _number(raw.get("accuracy"), "accuracy")

        return cls(
            vehicle_id=vehicle_id,
            position=position,
            speed_mps=speed,
            timestamp=_timestamp(raw.get("timestamp")),
            trip_id=_optional_id(raw.get("trip_id")),
            route_id=_optional_id(raw.get("route_id")),
            accuracy=accuracy,
        )


@dataclass(frozen=True, slots=True)
class LocationEvent:
    """Outbound live update published to route and vehicle topics."""

    vehicle_id: str
    trip_id: str | None
    route_id: str | None
    latitude: float
    longitude: float
    speed_kmh: float
    heading: float | None
    timestamp: datetime

    @classmethod
    def from_sample(cls, sample: VehicleSample) -> "LocationEvent":
        return cls(
            vehicle_id=sample.vehicle_id,
            trip_id=sample.trip_id,
            route_id=sample.route_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            speed_kmh=sample.speed_kmh,
            heading=sample.heading,
            timestamp=sample.captured_at,
        )

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "location",
            "vehicle_id": self.vehicle_id,
            "trip_id": self.trip_id,
            "route_id": self.route_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "speed_kmh": self.speed_kmh,
            "heading": self.heading,
            "timestamp": self.timestamp.isoformat(),
        }


def _optional_id(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any, name: str) -> float | None:
    if value is None or value == "":
        return None
    # bool is an int subclass; a JSON `true` is not a coordinate.
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid {name}: {value!r}")
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Invalid {name}: {value!r}") from exc
    if not math.isfinite(out):
        raise InvalidInput(f"Invalid {name}: {value!r}")
    return out


def _timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch seconds, or milliseconds as sent by browser clients.
        if not math.isfinite(value):
            raise InvalidInput(f"Invalid timestamp: {value!r}")
        seconds = float(value) / 1000.0 if value > 1e11 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise InvalidInput(f"Invalid timestamp: {value!r}") from exc
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInput(f"Invalid timestamp: {value!r}") from exc
    else:
        raise InvalidInput(f"Invalid timestamp: {value!r}")

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
