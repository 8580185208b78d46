class TrackingError(Exception):
    """Base exception for expected tracking/booking failures."""

    kind = "tracking_error"


class InvalidInput(TrackingError):
    """Raised when a report or request is malformed; nothing was mutated."""

    kind = "invalid_input"


class NotFound(TrackingError):
    kind = "not_found"


class VehicleNotReporting(NotFound):
    """Raised when a vehicle has never reported a position."""


class StopNotFound(NotFound):
    pass


class RouteNotFound(NotFound):
    pass


class TripNotFound(NotFound):
    pass


class BookingNotFound(NotFound):
    pass


class CapacityExceeded(TrackingError):
    """Raised when a reservation would overflow a trip's seats."""

    kind = "capacity_exceeded"


class UpstreamUnavailable(TrackingError):
    """Raised when the persistent store or an external feed is unreachable."""

    kind = "upstream_unavailable"
