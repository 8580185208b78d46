from .dynamodb_booking_repository import DynamoDbBookingRepository
from .dynamodb_location_history_repository import DynamoDbLocationHistoryRepository
from .local_gtfs_transit_repository import LocalGtfsTransitRepository

__all__ = [
    "DynamoDbBookingRepository",
    "DynamoDbLocationHistoryRepository",
    "LocalGtfsTransitRepository",
]
