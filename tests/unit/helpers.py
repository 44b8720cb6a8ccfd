from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from src.adapters.persistence import InMemoryFleetStore
from src.domain.models import Trip, TripStatus

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
# "Tomorrow at 10:00" relative to NOW.
TOMORROW_10 = datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)
JFK_LAX = timedelta(milliseconds=8_912_844)


@dataclass(slots=True)
class FakeClock:
    now: datetime

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def make_trip(
    trip_id: str,
    vehicle_id: str,
    departure: str,
    destination: str,
    departure_at: datetime,
    arrival_at: datetime,
    status: TripStatus = TripStatus.SCHEDULED,
) -> Trip:
    return Trip(
        trip_id=trip_id,
        vehicle_id=vehicle_id,
        departure_location_code=departure,
        destination_location_code=destination,
        departure_at=departure_at,
        arrival_at=arrival_at,
        status=status,
    )


def insert_trip(store: InMemoryFleetStore, trip: Trip) -> Trip:
    with store.serializable() as tx:
        tx.insert_trip(trip)
    return trip
