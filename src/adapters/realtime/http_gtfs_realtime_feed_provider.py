from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from src.app.ports.output import IVehicleFeedProvider
from src.domain.exceptions import UpstreamUnavailable
from src.domain.models.feed import FeedVehicle


def _parse_headers(raw: str | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for part in (raw or "").split(";"):
        k, sep, v = part.partition(":")
        if sep and k.strip():
            headers[k.strip()] = v.strip()
    return headers


@dataclass(slots=True)
class HttpGtfsRealtimeFeedProvider(IVehicleFeedProvider):
    """Fetches a GTFS-Realtime VehiclePositions feed over HTTP.

    Env vars:
      - GTFS_RT_VEHICLE_POSITIONS_URL: URL to a GTFS-RT VehiclePositions feed
      - GTFS_RT_HEADERS: optional headers, as 'Key:Value;Key2:Value2'
      - GTFS_RT_TIMEOUT_S: request timeout (default 10)

    Polling cadence belongs to the caller; every call hits the feed.
    """

    url: str | None = None
    headers_raw: str | None = None
    timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if self.url is None:
            self.url = os.getenv("GTFS_RT_VEHICLE_POSITIONS_URL")
        if self.headers_raw is None:
            self.headers_raw = os.getenv("GTFS_RT_HEADERS")
        if os.getenv("GTFS_RT_TIMEOUT_S"):
            self.timeout_s = float(os.environ["GTFS_RT_TIMEOUT_S"])

    async def list_vehicles(self) -> tuple[FeedVehicle, ...]:
        if not self.url:
            return ()
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.get(
                    self.url, headers=_parse_headers(self.headers_raw)
                )
                resp.raise_for_status()
            return parse_vehicle_positions(resp.content)
        except (httpx.HTTPError, DecodeError) as exc:
            raise UpstreamUnavailable(f"Vehicle positions feed: {exc}") from exc


def parse_vehicle_positions(content: bytes) -> tuple[FeedVehicle, ...]:
    """Decode a VehiclePositions message; entities without a position are skipped."""

    message = gtfs_realtime_pb2.FeedMessage()
    message.ParseFromString(content)

    out: list[FeedVehicle] = []
    for entity in message.entity:
        if not entity.HasField("vehicle"):
            continue
        vp = entity.vehicle
        if not vp.HasField("position"):
            continue

        trip = vp.trip if vp.HasField("trip") else None
        descriptor_id = vp.vehicle.id if vp.HasField("vehicle") else ""
        captured_at = None
        if vp.HasField("timestamp") and vp.timestamp > 0:
            captured_at = datetime.fromtimestamp(vp.timestamp, tz=timezone.utc)

        out.append(
            FeedVehicle(
                vehicle_id=descriptor_id or entity.id or None,
                trip_id=(trip.trip_id or None) if trip is not None else None,
                route_id=(trip.route_id or None) if trip is not None else None,
                lat=float(vp.position.latitude),
                lon=float(vp.position.longitude),
                speed_mps=(
                    float(vp.position.speed) if vp.position.HasField("speed") else None
                ),
                timestamp=captured_at,
            )
        )
    return tuple(out)
