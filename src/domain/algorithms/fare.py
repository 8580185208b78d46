from __future__ import annotations

from src.domain.models import FareQuote


def estimate_fare(
    *,
    base_fare: float,
    fare_per_km: float,
    stops_between: int,
    total_stops: int,
    route_distance_km: float,
    passengers: int = 1,
) -> FareQuote:
    """Estimate a fare from stop counts.

    Per-segment distances are not modeled: the traveled distance is the route
    distance scaled by the share of stop-to-stop hops between pickup and dropoff.
    """

    estimated_km = route_distance_km * stops_between / max(total_stops - 1, 1)
    per_passenger = base_fare + fare_per_km * estimated_km
    return FareQuote(
        estimated_distance_km=estimated_km,
        fare_per_passenger=per_passenger,
        total_fare=per_passenger * passengers,
        passengers=passengers,
    )
