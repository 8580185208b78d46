from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import VehicleSample


class ILocationHistoryRepository(ABC):
    """Durable audit trail of vehicle position samples."""

    @abstractmethod
    def persist_location_sample(self, sample: VehicleSample) -> None:
        raise NotImplementedError
