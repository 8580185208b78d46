from .booking_repository import IBookingRepository
from .location_history_repository import ILocationHistoryRepository
from .transit_repository import ITransitRepository
from .vehicle_feed_provider import IVehicleFeedProvider

__all__ = [
    "IBookingRepository",
    "ILocationHistoryRepository",
    "ITransitRepository",
    "IVehicleFeedProvider",
]
