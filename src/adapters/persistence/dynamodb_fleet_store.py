from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Iterator, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import dynamodb_client
from src.app.ports.output import (
    IBookingTransaction,
    ILocationRepository,
    ITripRepository,
    IVehicleRepository,
    TripQuery,
)
from src.domain.exceptions import IntegrityViolation, TransactionConflict
from src.domain.models import GeoPoint, Location, Trip, TripStatus, Vehicle

logger = logging.getLogger(__name__)

VEHICLE_TRIPS_INDEX = "vehicle-departure-index"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_ms(dt: datetime) -> int:
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def _from_ms(raw: str) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(raw))


def _error_code(exc: ClientError) -> str | None:
    return (
        exc.response.get("Error", {}).get("Code")
        if isinstance(getattr(exc, "response", None), dict)
        else None
    )


def _location_from_item(item: Mapping[str, Any]) -> Location:
    return Location(
        code=item["code"]["S"],
        point=GeoPoint(lat=float(item["lat"]["N"]), lon=float(item["lon"]["N"])),
    )


def _vehicle_from_item(item: Mapping[str, Any]) -> Vehicle:
    return Vehicle(
        vehicle_id=item["vehicle_id"]["S"],
        name=item.get("name", {}).get("S", ""),
        home_location_code=item["home_location_code"]["S"],
    )


def _trip_from_item(item: Mapping[str, Any]) -> Trip:
    return Trip(
        trip_id=item["trip_id"]["S"],
        vehicle_id=item["vehicle_id"]["S"],
        departure_location_code=item["departure_location_code"]["S"],
        destination_location_code=item["destination_location_code"]["S"],
        departure_at=_from_ms(item["departure_at_ms"]["N"]),
        arrival_at=_from_ms(item["arrival_at_ms"]["N"]),
        status=TripStatus(item["status"]["S"]),
    )


def _trip_to_item(trip: Trip, now_ms: int) -> dict[str, Any]:
    return {
        "trip_id": {"S": trip.trip_id},
        "vehicle_id": {"S": trip.vehicle_id},
        "departure_location_code": {"S": trip.departure_location_code},
        "destination_location_code": {"S": trip.destination_location_code},
        "departure_at_ms": {"N": str(_to_ms(trip.departure_at))},
        "arrival_at_ms": {"N": str(_to_ms(trip.arrival_at))},
        "status": {"S": trip.status.value},
        "created_at_ms": {"N": str(now_ms)},
        "updated_at_ms": {"N": str(now_ms)},
    }


@dataclass(slots=True)
class DynamoDbFleetStore(ILocationRepository, IVehicleRepository, ITripRepository):
    """Stores locations, vehicles and trips in three DynamoDB tables.

    Each vehicle item carries a `timeline_version`. Booking and cancelling
    write the trip and bump that version in one TransactWriteItems call,
    conditioned on the version read earlier, which serializes competing
    bookings for the same vehicle.

    Per-vehicle trip reads go through the `vehicle-departure-index` GSI.
    Vehicle items also count their trips and cancellations; a booking
    transaction treats an index view that disagrees with those counts as a
    lost race, since GSI reads can lag the base table.

    Env vars:
      - DDB_LOCATIONS_TABLE (default: fleetbook-locations)
      - DDB_VEHICLES_TABLE (default: fleetbook-vehicles)
      - DDB_TRIPS_TABLE (default: fleetbook-trips)
      - ENDPOINT_URL (preferred for LocalStack)
      - AWS_REGION
    """

    locations_table: str | None = None
    vehicles_table: str | None = None
    trips_table: str | None = None

    def _locations(self) -> str:
        return (
            self.locations_table
            or os.getenv("DDB_LOCATIONS_TABLE")
            or "fleetbook-locations"
        )

    def _vehicles(self) -> str:
        return self.vehicles_table or os.getenv("DDB_VEHICLES_TABLE") or "fleetbook-vehicles"

    def _trips(self) -> str:
        return self.trips_table or os.getenv("DDB_TRIPS_TABLE") or "fleetbook-trips"

    def create_tables(self) -> None:
        """Create the three tables if missing (LocalStack/dev helper)."""

        ddb = dynamodb_client()
        existing = set(ddb.list_tables().get("TableNames", []))
        for table, key in (
            (self._locations(), "code"),
            (self._vehicles(), "vehicle_id"),
        ):
            if table in existing:
                continue
            ddb.create_table(
                TableName=table,
                BillingMode="PAY_PER_REQUEST",
                AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
                KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
            )
            ddb.get_waiter("table_exists").wait(TableName=table)
            logger.info("Created DynamoDB table %s", table)

        if self._trips() not in existing:
            ddb.create_table(
                TableName=self._trips(),
                BillingMode="PAY_PER_REQUEST",
                AttributeDefinitions=[
                    {"AttributeName": "trip_id", "AttributeType": "S"},
                    {"AttributeName": "vehicle_id", "AttributeType": "S"},
                    {"AttributeName": "departure_at_ms", "AttributeType": "N"},
                ],
                KeySchema=[{"AttributeName": "trip_id", "KeyType": "HASH"}],
                GlobalSecondaryIndexes=[
                    {
                        "IndexName": VEHICLE_TRIPS_INDEX,
                        "KeySchema": [
                            {"AttributeName": "vehicle_id", "KeyType": "HASH"},
                            {"AttributeName": "departure_at_ms", "KeyType": "RANGE"},
                        ],
                        "Projection": {"ProjectionType": "ALL"},
                    }
                ],
            )
            ddb.get_waiter("table_exists").wait(TableName=self._trips())
            logger.info("Created DynamoDB table %s", self._trips())

    def _scan(self, table: str, **kwargs: Any) -> list[dict[str, Any]]:
        ddb = dynamodb_client()
        items: list[dict[str, Any]] = []
        paginator = ddb.get_paginator("scan")
        for page in paginator.paginate(TableName=table, ConsistentRead=True, **kwargs):
            items.extend(page.get("Items", []) or [])
        return items

    def _query_vehicle_trips(self, vehicle_id: str) -> list[dict[str, Any]]:
        # GSI reads are eventually consistent; booking transactions check the
        # result against the vehicle's trip counters.
        ddb = dynamodb_client()
        items: list[dict[str, Any]] = []
        paginator = ddb.get_paginator("query")
        for page in paginator.paginate(
            TableName=self._trips(),
            IndexName=VEHICLE_TRIPS_INDEX,
            KeyConditionExpression="vehicle_id = :v",
            ExpressionAttributeValues={":v": {"S": vehicle_id}},
        ):
            items.extend(page.get("Items", []) or [])
        return items

    # Setup (not part of the ports).

    def put_location(self, location: Location) -> None:
        dynamodb_client().put_item(
            TableName=self._locations(),
            Item={
                "code": {"S": location.code},
                "lat": {"N": str(location.point.lat)},
                "lon": {"N": str(location.point.lon)},
            },
        )

    def put_vehicle(self, vehicle: Vehicle) -> None:
        if self.get_location(vehicle.home_location_code) is None:
            raise IntegrityViolation(
                f"Vehicle {vehicle.vehicle_id}: unknown location {vehicle.home_location_code}"
            )
        # Re-seeding must not reset the counters of a vehicle that has trips.
        dynamodb_client().update_item(
            TableName=self._vehicles(),
            Key={"vehicle_id": {"S": vehicle.vehicle_id}},
            UpdateExpression=(
                "SET #n = :n, home_location_code = :h, "
                "timeline_version = if_not_exists(timeline_version, :zero), "
                "trip_count = if_not_exists(trip_count, :zero), "
                "cancelled_count = if_not_exists(cancelled_count, :zero)"
            ),
            ExpressionAttributeNames={"#n": "name"},
            ExpressionAttributeValues={
                ":n": {"S": vehicle.name},
                ":h": {"S": vehicle.home_location_code},
                ":zero": {"N": "0"},
            },
        )

    # ILocationRepository

    def list_locations(self) -> tuple[Location, ...]:
        locations = [_location_from_item(i) for i in self._scan(self._locations())]
        locations.sort(key=lambda loc: loc.code)
        return tuple(locations)

    def get_location(self, code: str) -> Location | None:
        resp = dynamodb_client().get_item(
            TableName=self._locations(), Key={"code": {"S": code}}, ConsistentRead=True
        )
        item = resp.get("Item")
        return _location_from_item(item) if item else None

    # IVehicleRepository

    def _vehicle_items(self) -> list[dict[str, Any]]:
        items = self._scan(self._vehicles())
        items.sort(key=lambda i: i["vehicle_id"]["S"])
        return items

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        return tuple(_vehicle_from_item(i) for i in self._vehicle_items())

    def _vehicle_item(self, vehicle_id: str) -> dict[str, Any] | None:
        resp = dynamodb_client().get_item(
            TableName=self._vehicles(),
            Key={"vehicle_id": {"S": vehicle_id}},
            ConsistentRead=True,
        )
        return resp.get("Item") or None

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        item = self._vehicle_item(vehicle_id)
        return _vehicle_from_item(item) if item else None

    def update_home_location(self, vehicle_id: str, location_code: str) -> None:
        if self.get_location(location_code) is None:
            raise IntegrityViolation(f"Unknown location {location_code}")
        try:
            dynamodb_client().update_item(
                TableName=self._vehicles(),
                Key={"vehicle_id": {"S": vehicle_id}},
                UpdateExpression="SET home_location_code = :c",
                ConditionExpression="attribute_exists(vehicle_id)",
                ExpressionAttributeValues={":c": {"S": location_code}},
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise IntegrityViolation(f"Unknown vehicle {vehicle_id}") from exc
            raise

    # ITripRepository

    def get_trip(self, trip_id: str) -> Trip | None:
        resp = dynamodb_client().get_item(
            TableName=self._trips(), Key={"trip_id": {"S": trip_id}}, ConsistentRead=True
        )
        item = resp.get("Item")
        return _trip_from_item(item) if item else None

    def list_trips(self, query: TripQuery | None = None) -> tuple[Trip, ...]:
        query = query or TripQuery()
        if query.vehicle_id is not None:
            items = self._query_vehicle_trips(query.vehicle_id)
        else:
            items = self._scan(self._trips())

        trips = [_trip_from_item(i) for i in items]
        matched = [t for t in trips if query.matches(t)]
        matched.sort(key=lambda t: (t.departure_at, t.trip_id))
        return tuple(matched)

    def list_vehicle_trips(
        self, vehicle_id: str, *, include_cancelled: bool = False
    ) -> tuple[Trip, ...]:
        trips = self.list_trips(TripQuery(vehicle_id=vehicle_id))
        if include_cancelled:
            return trips
        return tuple(t for t in trips if t.is_active)

    def transition_status(
        self,
        trip_id: str,
        *,
        from_statuses: Iterable[TripStatus],
        to_status: TripStatus,
        departs_after: datetime | None = None,
    ) -> Trip | None:
        allowed = sorted(s.value for s in from_statuses)
        placeholders = [f":f{i}" for i in range(len(allowed))]
        condition = f"#s IN ({', '.join(placeholders)})"
        values: dict[str, Any] = {p: {"S": s} for p, s in zip(placeholders, allowed)}
        if departs_after is not None:
            condition += " AND departure_at_ms > :after"
            values[":after"] = {"N": str(_to_ms(departs_after))}
        values[":to"] = {"S": to_status.value}
        values[":u"] = {"N": str(int(time.time() * 1000))}

        update = {
            "TableName": self._trips(),
            "Key": {"trip_id": {"S": trip_id}},
            "UpdateExpression": "SET #s = :to, updated_at_ms = :u",
            "ConditionExpression": condition,
            "ExpressionAttributeNames": {"#s": "status"},
            "ExpressionAttributeValues": values,
        }

        if to_status is not TripStatus.CANCELLED:
            try:
                resp = dynamodb_client().update_item(**update, ReturnValues="ALL_NEW")
            except ClientError as exc:
                if _error_code(exc) == "ConditionalCheckFailedException":
                    return None
                raise
            return _trip_from_item(resp["Attributes"])

        # Cancelling changes the vehicle timeline, so bump its version too.
        trip = self.get_trip(trip_id)
        if trip is None:
            return None
        try:
            dynamodb_client().transact_write_items(
                TransactItems=[
                    {"Update": update},
                    {
                        "Update": {
                            "TableName": self._vehicles(),
                            "Key": {"vehicle_id": {"S": trip.vehicle_id}},
                            "UpdateExpression": "ADD timeline_version :one, cancelled_count :one",
                            "ExpressionAttributeValues": {":one": {"N": "1"}},
                        }
                    },
                ]
            )
        except ClientError as exc:
            if _error_code(exc) == "TransactionCanceledException":
                return None
            raise
        return self.get_trip(trip_id)

    @contextmanager
    def serializable(self) -> Iterator[IBookingTransaction]:
        tx = _DynamoBookingTransaction(self)
        yield tx
        self._commit(tx)

    def _commit(self, tx: "_DynamoBookingTransaction") -> None:
        if not tx.staged:
            return

        now_ms = int(time.time() * 1000)
        items: list[dict[str, Any]] = []
        kinds: list[str] = []

        next_version = dict(tx.read_versions)
        for trip in tx.staged:
            if not trip.departure_at < trip.arrival_at:
                raise IntegrityViolation(f"Trip {trip.trip_id}: departure must precede arrival")
            items.append(
                {
                    "Put": {
                        "TableName": self._trips(),
                        "Item": _trip_to_item(trip, now_ms),
                        "ConditionExpression": "attribute_not_exists(trip_id)",
                    }
                }
            )
            kinds.append("trip")
            next_version[trip.vehicle_id] = next_version[trip.vehicle_id] + 1

        for code in sorted(
            {c for t in tx.staged for c in (t.departure_location_code, t.destination_location_code)}
        ):
            items.append(
                {
                    "ConditionCheck": {
                        "TableName": self._locations(),
                        "Key": {"code": {"S": code}},
                        "ConditionExpression": "attribute_exists(code)",
                    }
                }
            )
            kinds.append("location")

        for vehicle_id in sorted({t.vehicle_id for t in tx.staged}):
            added = sum(1 for t in tx.staged if t.vehicle_id == vehicle_id)
            items.append(
                {
                    "Update": {
                        "TableName": self._vehicles(),
                        "Key": {"vehicle_id": {"S": vehicle_id}},
                        "UpdateExpression": "SET timeline_version = :next ADD trip_count :added",
                        "ConditionExpression": "timeline_version = :seen",
                        "ExpressionAttributeValues": {
                            ":seen": {"N": str(tx.read_versions[vehicle_id])},
                            ":next": {"N": str(next_version[vehicle_id])},
                            ":added": {"N": str(added)},
                        },
                    }
                }
            )
            kinds.append("vehicle")

        try:
            dynamodb_client().transact_write_items(TransactItems=items)
        except ClientError as exc:
            if _error_code(exc) != "TransactionCanceledException":
                raise
            reasons = exc.response.get("CancellationReasons") or []
            for kind, reason in zip(kinds, reasons):
                if reason.get("Code") == "ConditionalCheckFailed" and kind in {"trip", "location"}:
                    raise IntegrityViolation(
                        f"Booking rejected by {kind} constraint: {reason.get('Message', '')}"
                    ) from exc
            raise TransactionConflict("Vehicle timeline changed during booking") from exc


class _DynamoBookingTransaction(IBookingTransaction):
    def __init__(self, store: DynamoDbFleetStore) -> None:
        self._store = store
        self.read_versions: dict[str, int] = {}
        # vehicle_id -> (trip_count, cancelled_count) as of the version read.
        self.read_counts: dict[str, tuple[int, int]] = {}
        self.staged: list[Trip] = []

    def _record(self, item: Mapping[str, Any]) -> None:
        vehicle_id = item["vehicle_id"]["S"]
        if vehicle_id in self.read_versions:
            return
        self.read_versions[vehicle_id] = int(item.get("timeline_version", {}).get("N", "0"))
        self.read_counts[vehicle_id] = (
            int(item.get("trip_count", {}).get("N", "0")),
            int(item.get("cancelled_count", {}).get("N", "0")),
        )

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        items = self._store._vehicle_items()
        for item in items:
            self._record(item)
        return tuple(_vehicle_from_item(i) for i in items)

    def _remember(self, vehicle_id: str) -> None:
        if vehicle_id in self.read_versions:
            return
        item = self._store._vehicle_item(vehicle_id)
        if item is None:
            raise IntegrityViolation(f"Unknown vehicle {vehicle_id}")
        self._record(item)

    def list_vehicle_trips(self, vehicle_id: str) -> tuple[Trip, ...]:
        self._remember(vehicle_id)
        trips = self._store.list_vehicle_trips(vehicle_id, include_cancelled=True)

        cancelled = sum(1 for t in trips if not t.is_active)
        if (len(trips), cancelled) != self.read_counts[vehicle_id]:
            raise TransactionConflict(
                f"Trip index for vehicle {vehicle_id} does not match its timeline version"
            )

        staged = [t for t in self.staged if t.vehicle_id == vehicle_id]
        return tuple(t for t in trips if t.is_active) + tuple(staged)

    def insert_trip(self, trip: Trip) -> None:
        self._remember(trip.vehicle_id)
        self.staged.append(trip)
