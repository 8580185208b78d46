from .tracking import (
    BookingNotFound,
    CapacityExceeded,
    InvalidInput,
    NotFound,
    RouteNotFound,
    StopNotFound,
    TrackingError,
    TripNotFound,
    UpstreamUnavailable,
    VehicleNotReporting,
)

__all__ = [
    "BookingNotFound",
    "CapacityExceeded",
    "InvalidInput",
    "NotFound",
    "RouteNotFound",
    "StopNotFound",
    "TrackingError",
    "TripNotFound",
    "UpstreamUnavailable",
    "VehicleNotReporting",
]
