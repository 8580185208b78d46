from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.app.ports.output import IVehicleFeedProvider
from src.app.services.broadcaster import Broadcaster
from src.domain.exceptions import InvalidInput, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeedIngestionService:
    """Feeds an external vehicle positions feed into the broadcaster."""

    provider: IVehicleFeedProvider
    broadcaster: Broadcaster
    poll_interval_s: float = 15.0

    async def poll_once(self) -> int:
        vehicles = await self.provider.list_vehicles()
        accepted = 0
        for v in vehicles:
            if not v.vehicle_id:
                continue
            # Feeds repeat the last fix until the vehicle reports again.
            latest = self.broadcaster.store.latest(v.vehicle_id)
            if (
                latest is not None
                and v.timestamp is not None
                and latest.captured_at >= v.timestamp
            ):
                continue
            try:
                self.broadcaster.on_location_update(v.to_report())
            except InvalidInput as exc:
                logger.debug("Skipping feed vehicle %s: %s", v.vehicle_id, exc)
                continue
            accepted += 1
        return accepted

    async def run(self) -> None:
        while True:
            try:
                accepted = await self.poll_once()
                logger.debug("Feed poll accepted %d vehicle update(s)", accepted)
            except UpstreamUnavailable:
                logger.warning("Vehicle positions feed unavailable", exc_info=True)
            await asyncio.sleep(self.poll_interval_s)
