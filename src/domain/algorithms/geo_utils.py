from __future__ import annotations

import math

from src.domain.models import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters."""

    return distance_km(a, b) * 1000.0


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle (haversine) distance in kilometers."""

    lat1 = math.radians(a.lat)
    lon1 = math.radians(a.lon)
    lat2 = math.radians(b.lat)
    lon2 = math.radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_KM * math.asin(math.sqrt(s))


def heading_degrees(a: GeoPoint, b: GeoPoint) -> float:
    """Bearing from a to b in [0, 360), using raw lon/lat deltas."""

    deg = math.degrees(math.atan2(b.lon - a.lon, b.lat - a.lat))
    return deg % 360.0
