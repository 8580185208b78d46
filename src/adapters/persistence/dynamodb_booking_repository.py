from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import dynamodb_client, upstream_errors
from src.app.ports.output import IBookingRepository
from src.domain.models import (
    Booking,
    BookingKey,
    BookingStatus,
    ById,
    CapacityRecord,
    Trip,
    TripStatus,
    TripStop,
)

REFERENCE_INDEX = "booking_reference-index"
DRIVER_INDEX = "driver_id-index"
_COUNTER_ID = "0"


@dataclass(slots=True)
class DynamoDbBookingRepository(IBookingRepository):
    """Trips, seat counts and bookings in DynamoDB.

    Booking ids come from an atomic counter item (booking_id = 0) in the
    bookings table; references are looked up through a GSI, and a driver's
    trips through another. Booking writes and the trip's durable seat count
    change in one transaction; a cancellation only applies to a booking that
    is still confirmed.

    Env vars:
      - DDB_TRIPS_TABLE (default: transit-trips)
      - DDB_BOOKINGS_TABLE (default: transit-bookings)
      - ENDPOINT_URL (preferred for LocalStack)
      - AWS_REGION
    """

    trips_table: str | None = None
    bookings_table: str | None = None

    def _trips(self) -> str:
        return self.trips_table or os.getenv("DDB_TRIPS_TABLE") or "transit-trips"

    def _bookings(self) -> str:
        return (
            self.bookings_table
            or os.getenv("DDB_BOOKINGS_TABLE")
            or "transit-bookings"
        )

    def _trip_item(self, trip_id: str) -> Mapping[str, Any] | None:
        with upstream_errors("get trip"):
            resp = dynamodb_client().get_item(
                TableName=self._trips(),
                Key={"trip_id": {"S": trip_id}},
                ConsistentRead=True,
            )
        return resp.get("Item") or None

    def get_trip(self, trip_id: str) -> Trip | None:
        item = self._trip_item(trip_id)
        if item is None:
            return None
        return _item_to_trip(item)

    def find_active_trip(self, driver_id: str) -> Trip | None:
        paginator = dynamodb_client().get_paginator("query")
        with upstream_errors("find active trip"):
            for page in paginator.paginate(
                TableName=self._trips(),
                IndexName=DRIVER_INDEX,
                KeyConditionExpression="driver_id = :d",
                FilterExpression="#st = :active",
                ExpressionAttributeNames={"#st": "status"},
                ExpressionAttributeValues={
                    ":d": {"S": driver_id},
                    ":active": {"S": TripStatus.ACTIVE.value},
                },
            ):
                for item in page.get("Items") or []:
                    return _item_to_trip(item)
        return None

    def put_trip(self, trip: Trip, capacity: CapacityRecord) -> None:
        item: dict[str, Any] = {
            "trip_id": {"S": trip.trip_id},
            "route_id": {"S": trip.route_id},
            "vehicle_id": {"S": trip.vehicle_id},
            "status": {"S": trip.status.value},
            "base_fare": {"N": str(trip.base_fare)},
            "fare_per_km": {"N": str(trip.fare_per_km)},
            "distance_km": {"N": str(trip.distance_km)},
            "stops": {
                "S": json.dumps(
                    [{"stop_id": s.stop_id, "sequence": s.sequence} for s in trip.stops]
                )
            },
            "total_seats": {"N": str(capacity.total_seats)},
            "seats_booked": {"N": str(capacity.seats_booked)},
        }
        # The driver GSI key must be absent rather than empty.
        if trip.driver_id:
            item["driver_id"] = {"S": trip.driver_id}
        if trip.started_at is not None:
            item["started_at_ms"] = {"N": str(_epoch_ms(trip.started_at))}

        with upstream_errors("put trip"):
            dynamodb_client().put_item(
                TableName=self._trips(),
                Item=item,
                ConditionExpression="attribute_not_exists(trip_id)",
            )

    def complete_trip(self, trip_id: str) -> None:
        now_ms = _epoch_ms(datetime.now(timezone.utc))
        with upstream_errors("complete trip"):
            dynamodb_client().update_item(
                TableName=self._trips(),
                Key={"trip_id": {"S": trip_id}},
                UpdateExpression="SET #st = :completed, ended_at_ms = :e",
                ExpressionAttributeNames={"#st": "status"},
                ExpressionAttributeValues={
                    ":completed": {"S": TripStatus.COMPLETED.value},
                    ":e": {"N": str(now_ms)},
                },
            )

    def get_trip_capacity(self, trip_id: str) -> CapacityRecord | None:
        item = self._trip_item(trip_id)
        if item is None or "total_seats" not in item:
            return None
        booked = int(item.get("seats_booked", {}).get("N", "0"))
        return CapacityRecord(
            trip_id=trip_id,
            total_seats=int(item["total_seats"]["N"]),
            seats_booked=max(0, booked),
        )

    def put_trip_capacity(self, record: CapacityRecord) -> None:
        with upstream_errors("put trip capacity"):
            dynamodb_client().update_item(
                TableName=self._trips(),
                Key={"trip_id": {"S": record.trip_id}},
                UpdateExpression="SET total_seats = :t",
                ExpressionAttributeValues={":t": {"N": str(record.total_seats)}},
            )

    def allocate_booking_id(self) -> int:
        with upstream_errors("allocate booking id"):
            resp = dynamodb_client().update_item(
                TableName=self._bookings(),
                Key={"booking_id": {"N": _COUNTER_ID}},
                UpdateExpression="ADD next_id :one",
                ExpressionAttributeValues={":one": {"N": "1"}},
                ReturnValues="UPDATED_NEW",
            )
        return int(resp["Attributes"]["next_id"]["N"])

    def persist_booking(self, booking: Booking) -> None:
        with upstream_errors("persist booking"):
            dynamodb_client().transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._bookings(),
                            "Item": _booking_to_item(booking),
                            "ConditionExpression": "attribute_not_exists(booking_id)",
                        }
                    },
                    {
                        "Update": {
                            "TableName": self._trips(),
                            "Key": {"trip_id": {"S": booking.trip_id}},
                            "UpdateExpression": "ADD seats_booked :n",
                            "ExpressionAttributeValues": {
                                ":n": {"N": str(booking.passengers)}
                            },
                        }
                    },
                ]
            )

    def persist_cancellation(self, booking: Booking) -> bool:
        now_ms = _epoch_ms(datetime.now(timezone.utc))
        with upstream_errors("persist cancellation"):
            try:
                self._cancel(booking, now_ms)
            except ClientError as exc:
                if _condition_failed(exc):
                    return False
                raise
        return True

    def _cancel(self, booking: Booking, now_ms: int) -> None:
        dynamodb_client().transact_write_items(
            TransactItems=[
                {
                    "Update": {
                        "TableName": self._bookings(),
                        "Key": {"booking_id": {"N": str(booking.booking_id)}},
                        "UpdateExpression": "SET #s = :c, cancelled_at_ms = :u",
                        "ConditionExpression": "#s = :confirmed",
                        "ExpressionAttributeNames": {"#s": "booking_status"},
                        "ExpressionAttributeValues": {
                            ":c": {"S": BookingStatus.CANCELLED.value},
                            ":confirmed": {"S": BookingStatus.CONFIRMED.value},
                            ":u": {"N": str(now_ms)},
                        },
                    }
                },
                {
                    "Update": {
                        "TableName": self._trips(),
                        "Key": {"trip_id": {"S": booking.trip_id}},
                        "UpdateExpression": "ADD seats_booked :n",
                        "ExpressionAttributeValues": {
                            ":n": {"N": str(-booking.passengers)}
                        },
                    }
                },
            ]
        )

    def get_booking(self, key: BookingKey) -> Booking | None:
        ddb = dynamodb_client()
        with upstream_errors("get booking"):
            if isinstance(key, ById):
                resp = ddb.get_item(
                    TableName=self._bookings(),
                    Key={"booking_id": {"N": str(key.booking_id)}},
                    ConsistentRead=True,
                )
                item = resp.get("Item")
            else:
                resp = ddb.query(
                    TableName=self._bookings(),
                    IndexName=REFERENCE_INDEX,
                    KeyConditionExpression="booking_reference = :r",
                    ExpressionAttributeValues={":r": {"S": key.reference}},
                    Limit=1,
                )
                items = resp.get("Items") or []
                item = items[0] if items else None

        # The id counter lives in the same table and is not a booking.
        if not item or "booking_reference" not in item:
            return None
        return _item_to_booking(item)


def _booking_to_item(booking: Booking) -> dict[str, Any]:
    return {
        "booking_id": {"N": str(booking.booking_id)},
        "booking_reference": {"S": booking.reference},
        "trip_id": {"S": booking.trip_id},
        "route_id": {"S": booking.route_id},
        "vehicle_id": {"S": booking.vehicle_id},
        "passenger_name": {"S": booking.passenger_name},
        "passenger_phone": {"S": booking.passenger_phone},
        "pickup_stop_id": {"S": booking.pickup_stop_id},
        "dropoff_stop_id": {"S": booking.dropoff_stop_id},
        "number_of_passengers": {"N": str(booking.passengers)},
        "fare_amount": {"N": f"{booking.fare_amount:.2f}"},
        "booking_status": {"S": booking.status.value},
        "created_at_ms": {"N": str(_epoch_ms(booking.created_at))},
    }


def _item_to_booking(item: Mapping[str, Any]) -> Booking:
    return Booking(
        booking_id=int(item["booking_id"]["N"]),
        reference=item["booking_reference"]["S"],
        trip_id=item["trip_id"]["S"],
        route_id=item["route_id"]["S"],
        vehicle_id=item["vehicle_id"]["S"],
        passenger_name=item["passenger_name"]["S"],
        passenger_phone=item["passenger_phone"]["S"],
        pickup_stop_id=item["pickup_stop_id"]["S"],
        dropoff_stop_id=item["dropoff_stop_id"]["S"],
        passengers=int(item["number_of_passengers"]["N"]),
        fare_amount=float(item["fare_amount"]["N"]),
        status=BookingStatus(item["booking_status"]["S"]),
        created_at=datetime.fromtimestamp(
            int(item["created_at_ms"]["N"]) / 1000, tz=timezone.utc
        ),
    )


def _item_to_trip(item: Mapping[str, Any]) -> Trip:
    stops_raw = json.loads(item.get("stops", {}).get("S", "[]"))
    started_ms = item.get("started_at_ms", {}).get("N")
    return Trip(
        trip_id=item["trip_id"]["S"],
        route_id=item["route_id"]["S"],
        vehicle_id=item["vehicle_id"]["S"],
        driver_id=item.get("driver_id", {}).get("S"),
        status=TripStatus(item.get("status", {}).get("S", "active")),
        base_fare=float(item.get("base_fare", {}).get("N", "0")),
        fare_per_km=float(item.get("fare_per_km", {}).get("N", "0")),
        distance_km=float(item.get("distance_km", {}).get("N", "0")),
        stops=tuple(
            TripStop(stop_id=str(s["stop_id"]), sequence=int(s["sequence"]))
            for s in stops_raw
        ),
        started_at=(
            datetime.fromtimestamp(int(started_ms) / 1000, tz=timezone.utc)
            if started_ms is not None
            else None
        ),
    )


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _condition_failed(exc: ClientError) -> bool:
    """True when a write was refused by its condition expression."""

    code = exc.response.get("Error", {}).get("Code")
    if code == "ConditionalCheckFailedException":
        return True
    if code != "TransactionCanceledException":
        return False
    reasons = exc.response.get("CancellationReasons")
    if reasons:
        return any(r.get("Code") == "ConditionalCheckFailed" for r in reasons)
    # Older endpoints only list the reasons in the message.
    return "ConditionalCheckFailed" in exc.response.get("Error", {}).get("Message", "")
