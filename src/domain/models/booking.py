from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .geo import GeoPoint
from .trip import Trip


@dataclass(frozen=True, slots=True)
class BookingConfirmation:
    trip: Trip


@dataclass(frozen=True, slots=True)
class BookingProposal:
    """Earliest alternative departure; never persisted.

    The caller re-submits `departure_at` to actually book it.
    """

    vehicle_id: str
    departure_location_code: str
    destination_location_code: str
    departure_at: datetime
    arrival_at: datetime
    message: str = (
        "No vehicle available at requested time. Please confirm if you would "
        "like to book for the alternative time shown."
    )


BookingOutcome = BookingConfirmation | BookingProposal


@dataclass(frozen=True, slots=True)
class InterpolatedPosition:
    point: GeoPoint
    progress: float


@dataclass(frozen=True, slots=True)
class TripStatusView:
    """A trip as seen at a given instant.

    `effective_status` advances a stale stored status by the clock, so callers
    don't have to wait for the reconciler.
    """

    trip: Trip
    effective_status: str
    current_location_code: str | None = None
    position: InterpolatedPosition | None = None


@dataclass(frozen=True, slots=True)
class NextTrip:
    trip_id: str
    departure_at: datetime
    destination_location_code: str


@dataclass(frozen=True, slots=True)
class VehicleAvailability:
    vehicle_id: str
    location_code: str
    available_from: datetime
    next_trip: NextTrip | None = None


@dataclass(frozen=True, slots=True)
class VehicleLocation:
    vehicle_id: str
    at: datetime
    location_code: str
    position: InterpolatedPosition | None = None


@dataclass(frozen=True, slots=True)
class LocationDistance:
    from_code: str
    to_code: str
    distance_miles: float
    travel_time_minutes: int


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    started: int = 0
    completed: int = 0

    @property
    def updated(self) -> int:
        return self.started + self.completed
