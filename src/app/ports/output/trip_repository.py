from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import ContextManager, Iterable

from src.domain.models import Trip, TripStatus, Vehicle


@dataclass(frozen=True, slots=True)
class TripQuery:
    """Optional filters for listing trips; None means "any"."""

    vehicle_id: str | None = None
    statuses: frozenset[TripStatus] | None = None
    departure_location_code: str | None = None
    destination_location_code: str | None = None
    departs_after: datetime | None = None
    departs_before: datetime | None = None
    arrives_before: datetime | None = None

    def matches(self, trip: Trip) -> bool:
        if self.vehicle_id is not None and trip.vehicle_id != self.vehicle_id:
            return False
        if self.statuses is not None and trip.status not in self.statuses:
            return False
        if (
            self.departure_location_code is not None
            and trip.departure_location_code != self.departure_location_code
        ):
            return False
        if (
            self.destination_location_code is not None
            and trip.destination_location_code != self.destination_location_code
        ):
            return False
        if self.departs_after is not None and trip.departure_at < self.departs_after:
            return False
        if self.departs_before is not None and trip.departure_at > self.departs_before:
            return False
        if self.arrives_before is not None and trip.arrival_at > self.arrives_before:
            return False
        return True


class IBookingTransaction(ABC):
    """Reads and writes made inside one serializable booking transaction."""

    @abstractmethod
    def list_vehicles(self) -> tuple[Vehicle, ...]:
        raise NotImplementedError

    @abstractmethod
    def list_vehicle_trips(self, vehicle_id: str) -> tuple[Trip, ...]:
        """Non-cancelled trips of the vehicle, as of the transaction's reads."""

    @abstractmethod
    def insert_trip(self, trip: Trip) -> None:
        """Stage a new trip; it becomes visible only when the transaction commits."""


class ITripRepository(ABC):
    """Persistence port for trips."""

    @abstractmethod
    def get_trip(self, trip_id: str) -> Trip | None:
        raise NotImplementedError

    @abstractmethod
    def list_trips(self, query: TripQuery | None = None) -> tuple[Trip, ...]:
        """Return matching trips ordered by departure."""

    @abstractmethod
    def list_vehicle_trips(
        self, vehicle_id: str, *, include_cancelled: bool = False
    ) -> tuple[Trip, ...]:
        raise NotImplementedError

    @abstractmethod
    def transition_status(
        self,
        trip_id: str,
        *,
        from_statuses: Iterable[TripStatus],
        to_status: TripStatus,
        departs_after: datetime | None = None,
    ) -> Trip | None:
        """Conditionally update a single trip's status.

        Returns the updated trip, or None when the trip's current status is
        not in `from_statuses` (or it departs at/before `departs_after`).
        """

    @abstractmethod
    def serializable(self) -> ContextManager[IBookingTransaction]:
        """Open a booking transaction.

        Commits on clean exit. Raises TransactionConflict when another
        transaction changed a vehicle timeline this one read; on any error
        nothing is written.
        """
