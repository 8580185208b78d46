from __future__ import annotations

import math

ARRIVING_RADIUS_KM = 0.1
MOVING_SPEED_KMH = 10.0
TRAFFIC_FACTOR = 0.7
CITY_AVERAGE_KMH = 25.0
ARRIVING_TEXT = "Arriving now"


def effective_speed_kmh(reported_kmh: float | None) -> float:
    """Speed to plan with: discounted when moving, city average when crawling."""

    if reported_kmh is not None and reported_kmh > MOVING_SPEED_KMH:
        return reported_kmh * TRAFFIC_FACTOR
    return CITY_AVERAGE_KMH


def eta_minutes(distance_km: float, reported_kmh: float | None) -> int:
    if distance_km < ARRIVING_RADIUS_KM:
        return 0
    return math.ceil(distance_km / effective_speed_kmh(reported_kmh) * 60.0)


def format_eta(minutes: int) -> str:
    if minutes < 1:
        return ARRIVING_TEXT
    return f"{minutes} min" if minutes == 1 else f"{minutes} mins"
