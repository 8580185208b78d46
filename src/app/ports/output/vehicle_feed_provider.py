from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models.feed import FeedVehicle


class IVehicleFeedProvider(ABC):
    """Port for polling an external vehicle positions feed (e.g. GTFS-Realtime)."""

    @abstractmethod
    async def list_vehicles(self) -> tuple[FeedVehicle, ...]:
        """Return the feed's current vehicles; raises UpstreamUnavailable."""
