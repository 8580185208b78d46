from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.domain.exceptions import InvalidInput


class TopicFamily(str, Enum):
    ROUTE = "route"
    VEHICLE = "vehicle"
    DRIVER = "driver"


@dataclass(frozen=True, slots=True)
class Topic:
    """A broadcast channel key: ``route:<id>``, ``vehicle:<id>`` or ``driver:<id>``."""

    family: TopicFamily
    key: str

    def __str__(self) -> str:
        return f"{self.family.value}:{self.key}"

    @classmethod
    def route(cls, route_id: str) -> "Topic":
        return cls(TopicFamily.ROUTE, str(route_id))

    @classmethod
    def vehicle(cls, vehicle_id: str) -> "Topic":
        return cls(TopicFamily.VEHICLE, str(vehicle_id))

    @classmethod
    def driver(cls, driver_id: str) -> "Topic":
        return cls(TopicFamily.DRIVER, str(driver_id))

    @classmethod
    def parse(cls, raw: str) -> "Topic":
        family_raw, sep, key = (raw or "").partition(":")
        key = key.strip()
        if not sep or not key:
            raise InvalidInput(f"Invalid topic: {raw!r}")
        try:
            family = TopicFamily(family_raw.strip().lower())
        except ValueError as exc:
            raise InvalidInput(f"Unknown topic family: {family_raw!r}") from exc
        return cls(family, key)
