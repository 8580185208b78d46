from __future__ import annotations

import os
from typing import Any, Callable

import httpx
import pytest

from src.adapters.aws import dynamodb_client
from src.adapters.persistence.dynamodb_booking_repository import (
    DRIVER_INDEX,
    REFERENCE_INDEX,
)

TRIPS_TABLE = "transit-test-trips"
BOOKINGS_TABLE = "transit-test-bookings"
LOCATIONS_TABLE = "transit-test-vehicle-locations"


def _localstack_ready(endpoint_url: str) -> bool:
    try:
        resp = httpx.get(endpoint_url.rstrip("/") + "/_localstack/health", timeout=1.5)
    except httpx.HTTPError:
        return False
    if resp.is_error:
        return False
    services = resp.json().get("services", {})
    return services.get("dynamodb") in {"available", "running"}


@pytest.fixture(scope="session", autouse=True)
def localstack_env() -> None:
    """Point the DynamoDB adapters at LocalStack and the test tables."""

    os.environ.setdefault("USE_LOCALSTACK", "true")
    os.environ.setdefault("ENDPOINT_URL", "http://localhost:4566")
    os.environ.setdefault("AWS_REGION", "eu-west-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
    os.environ.setdefault("DDB_TRIPS_TABLE", TRIPS_TABLE)
    os.environ.setdefault("DDB_BOOKINGS_TABLE", BOOKINGS_TABLE)
    os.environ.setdefault("DDB_LOCATIONS_TABLE", LOCATIONS_TABLE)


@pytest.fixture(scope="session")
def require_localstack(localstack_env: None) -> str:
    endpoint_url = os.environ["ENDPOINT_URL"]
    if not _localstack_ready(endpoint_url):
        msg = f"LocalStack DynamoDB not reachable at {endpoint_url}"
        # CI starts LocalStack, so a missing one there is a failure.
        if os.getenv("CI") or os.getenv("REQUIRE_LOCALSTACK"):
            pytest.fail(msg, pytrace=False)
        pytest.skip(f"{msg}; skipping integration tests")
    return endpoint_url


@pytest.fixture(scope="session")
def ensure_table(require_localstack: str) -> Callable[..., str]:
    """Create a pay-per-request table once per session; returns its name."""

    ddb = dynamodb_client()

    def _ensure(table: str, **definition: Any) -> str:
        if table not in ddb.list_tables().get("TableNames", []):
            ddb.create_table(
                TableName=table, BillingMode="PAY_PER_REQUEST", **definition
            )
            ddb.get_waiter("table_exists").wait(TableName=table)
        return table

    return _ensure


@pytest.fixture(scope="session")
def locations_table(ensure_table: Callable[..., str]) -> str:
    return ensure_table(
        LOCATIONS_TABLE,
        AttributeDefinitions=[
            {"AttributeName": "vehicle_id", "AttributeType": "S"},
            {"AttributeName": "captured_at_ms", "AttributeType": "N"},
        ],
        KeySchema=[
            {"AttributeName": "vehicle_id", "KeyType": "HASH"},
            {"AttributeName": "captured_at_ms", "KeyType": "RANGE"},
        ],
    )


@pytest.fixture(scope="session")
def trips_table(ensure_table: Callable[..., str]) -> str:
    return ensure_table(
        TRIPS_TABLE,
        AttributeDefinitions=[
            {"AttributeName": "trip_id", "AttributeType": "S"},
            {"AttributeName": "driver_id", "AttributeType": "S"},
        ],
        KeySchema=[{"AttributeName": "trip_id", "KeyType": "HASH"}],
        GlobalSecondaryIndexes=[
            {
                "IndexName": DRIVER_INDEX,
                "KeySchema": [{"AttributeName": "driver_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
    )


@pytest.fixture(scope="session")
def bookings_table(ensure_table: Callable[..., str]) -> str:
    return ensure_table(
        BOOKINGS_TABLE,
        AttributeDefinitions=[
            {"AttributeName": "booking_id", "AttributeType": "N"},
            {"AttributeName": "booking_reference", "AttributeType": "S"},
        ],
        KeySchema=[{"AttributeName": "booking_id", "KeyType": "HASH"}],
        GlobalSecondaryIndexes=[
            {
                "IndexName": REFERENCE_INDEX,
                "KeySchema": [
                    {"AttributeName": "booking_reference", "KeyType": "HASH"}
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
    )
