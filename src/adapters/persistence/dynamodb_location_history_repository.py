from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from src.adapters.aws import dynamodb_client, upstream_errors
from src.app.ports.output import ILocationHistoryRepository
from src.domain.models import VehicleSample


@dataclass(slots=True)
class DynamoDbLocationHistoryRepository(ILocationHistoryRepository):
    """Appends vehicle samples to DynamoDB (vehicle_id + captured_at_ms key).

    Env vars:
      - DDB_LOCATIONS_TABLE (default: transit-vehicle-locations)
      - ENDPOINT_URL (preferred for LocalStack)
      - AWS_REGION
    """

    table_name: str | None = None

    def _table(self) -> str:
        return (
            self.table_name
            or os.getenv("DDB_LOCATIONS_TABLE")
            or "transit-vehicle-locations"
        )

    def persist_location_sample(self, sample: VehicleSample) -> None:
        item: dict[str, Any] = {
            "vehicle_id": {"S": sample.vehicle_id},
            "captured_at_ms": {"N": str(int(sample.captured_at.timestamp() * 1000))},
            "latitude": {"N": repr(sample.latitude)},
            "longitude": {"N": repr(sample.longitude)},
            "speed_kmh": {"N": repr(sample.speed_kmh)},
        }
        if sample.heading is not None:
            item["heading"] = {"N": repr(sample.heading)}
        if sample.accuracy is not None:
            item["accuracy"] = {"N": repr(sample.accuracy)}
        if sample.trip_id:
            item["trip_id"] = {"S": sample.trip_id}
        if sample.route_id:
            item["route_id"] = {"S": sample.route_id}

        with upstream_errors("persist location sample"):
            dynamodb_client().put_item(TableName=self._table(), Item=item)
