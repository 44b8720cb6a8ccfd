from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator

from src.app.ports.output import (
    IBookingTransaction,
    ILocationRepository,
    ITripRepository,
    IVehicleRepository,
    TripQuery,
)
from src.domain.exceptions import IntegrityViolation, TransactionConflict
from src.domain.models import Location, Trip, TripStatus, Vehicle


class InMemoryFleetStore(ILocationRepository, IVehicleRepository, ITripRepository):
    """Process-local store for locations, vehicles and trips.

    Booking transactions are optimistic: every trip insert or cancellation
    bumps the owning vehicle's timeline version, and a transaction commits
    only if each vehicle it books still has the version it read.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._locations: dict[str, Location] = {}
        self._vehicles: dict[str, Vehicle] = {}
        self._versions: dict[str, int] = {}
        self._trips: dict[str, Trip] = {}

    # Setup (not part of the ports).

    def put_location(self, location: Location) -> None:
        with self._lock:
            self._locations[location.code] = location

    def put_vehicle(self, vehicle: Vehicle) -> None:
        with self._lock:
            if vehicle.home_location_code not in self._locations:
                raise IntegrityViolation(
                    f"Vehicle {vehicle.vehicle_id}: unknown location {vehicle.home_location_code}"
                )
            self._vehicles[vehicle.vehicle_id] = vehicle
            self._versions.setdefault(vehicle.vehicle_id, 0)

    # ILocationRepository

    def list_locations(self) -> tuple[Location, ...]:
        with self._lock:
            return tuple(sorted(self._locations.values(), key=lambda loc: loc.code))

    def get_location(self, code: str) -> Location | None:
        with self._lock:
            return self._locations.get(code)

    # IVehicleRepository

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        with self._lock:
            return tuple(sorted(self._vehicles.values(), key=lambda v: v.vehicle_id))

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        with self._lock:
            return self._vehicles.get(vehicle_id)

    def update_home_location(self, vehicle_id: str, location_code: str) -> None:
        with self._lock:
            vehicle = self._vehicles.get(vehicle_id)
            if vehicle is None:
                raise IntegrityViolation(f"Unknown vehicle {vehicle_id}")
            if location_code not in self._locations:
                raise IntegrityViolation(f"Unknown location {location_code}")
            self._vehicles[vehicle_id] = Vehicle(
                vehicle_id=vehicle.vehicle_id,
                name=vehicle.name,
                home_location_code=location_code,
            )

    # ITripRepository

    def get_trip(self, trip_id: str) -> Trip | None:
        with self._lock:
            return self._trips.get(trip_id)

    def list_trips(self, query: TripQuery | None = None) -> tuple[Trip, ...]:
        query = query or TripQuery()
        with self._lock:
            matched = [t for t in self._trips.values() if query.matches(t)]
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
        allowed = frozenset(from_statuses)
        with self._lock:
            trip = self._trips.get(trip_id)
            if trip is None or trip.status not in allowed:
                return None
            if departs_after is not None and trip.departure_at <= departs_after:
                return None

            updated = trip.with_status(to_status)
            self._trips[trip_id] = updated
            if to_status is TripStatus.CANCELLED:
                self._versions[trip.vehicle_id] = self._versions.get(trip.vehicle_id, 0) + 1
            return updated

    @contextmanager
    def serializable(self) -> Iterator[IBookingTransaction]:
        tx = _InMemoryBookingTransaction(self)
        yield tx
        self._commit(tx)

    def _version(self, vehicle_id: str) -> int:
        return self._versions.get(vehicle_id, 0)

    def _commit(self, tx: "_InMemoryBookingTransaction") -> None:
        if not tx.staged:
            return

        with self._lock:
            for trip in tx.staged:
                if self._version(trip.vehicle_id) != tx.read_versions[trip.vehicle_id]:
                    raise TransactionConflict(
                        f"Vehicle {trip.vehicle_id} timeline changed during booking"
                    )

            # Validate everything before applying anything.
            for trip in tx.staged:
                self._check_integrity(trip)

            for trip in tx.staged:
                self._trips[trip.trip_id] = trip
                self._versions[trip.vehicle_id] = self._version(trip.vehicle_id) + 1

    def _check_integrity(self, trip: Trip) -> None:
        if trip.trip_id in self._trips:
            raise IntegrityViolation(f"Duplicate trip id {trip.trip_id}")
        if trip.vehicle_id not in self._vehicles:
            raise IntegrityViolation(f"Trip {trip.trip_id}: unknown vehicle {trip.vehicle_id}")
        for code in (trip.departure_location_code, trip.destination_location_code):
            if code not in self._locations:
                raise IntegrityViolation(f"Trip {trip.trip_id}: unknown location {code}")
        if not trip.departure_at < trip.arrival_at:
            raise IntegrityViolation(f"Trip {trip.trip_id}: departure must precede arrival")


class _InMemoryBookingTransaction(IBookingTransaction):
    def __init__(self, store: InMemoryFleetStore) -> None:
        self._store = store
        self.read_versions: dict[str, int] = {}
        self.staged: list[Trip] = []

    def _remember(self, vehicle_id: str) -> None:
        self.read_versions.setdefault(vehicle_id, self._store._version(vehicle_id))

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        with self._store._lock:
            vehicles = self._store.list_vehicles()
            for v in vehicles:
                self._remember(v.vehicle_id)
        return vehicles

    def list_vehicle_trips(self, vehicle_id: str) -> tuple[Trip, ...]:
        with self._store._lock:
            self._remember(vehicle_id)
            trips = self._store.list_vehicle_trips(vehicle_id)
        staged = [t for t in self.staged if t.vehicle_id == vehicle_id]
        return trips + tuple(staged)

    def insert_trip(self, trip: Trip) -> None:
        with self._store._lock:
            self._remember(trip.vehicle_id)
        self.staged.append(trip)
