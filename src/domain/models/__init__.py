from .booking import (
    Booking,
    BookingKey,
    BookingStatus,
    ById,
    ByReference,
    Trip,
    TripStatus,
    TripStop,
)
from .capacity import CapacityRecord, FareQuote
from .eta import EtaResult, NextArrivals, RouteEtaResult
from .geo import GeoPoint
from .location import LocationEvent, LocationReport, NearbyVehicle, VehicleSample
from .stop import RouteStop, Stop
from .topic import Topic, TopicFamily

__all__ = [
    "Booking",
    "BookingKey",
    "BookingStatus",
    "ById",
    "ByReference",
    "CapacityRecord",
    "EtaResult",
    "FareQuote",
    "GeoPoint",
    "LocationEvent",
    "LocationReport",
    "NearbyVehicle",
    "NextArrivals",
    "RouteEtaResult",
    "RouteStop",
    "Stop",
    "Topic",
    "TopicFamily",
    "Trip",
    "TripStatus",
    "TripStop",
    "VehicleSample",
]
