from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class TripStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (TripStatus.COMPLETED, TripStatus.CANCELLED)

    def can_transition_to(self, target: "TripStatus") -> bool:
        return target in _FORWARD_TRANSITIONS[self]


_FORWARD_TRANSITIONS: dict[TripStatus, frozenset[TripStatus]] = {
    TripStatus.SCHEDULED: frozenset(
        {TripStatus.IN_PROGRESS, TripStatus.COMPLETED, TripStatus.CANCELLED}
    ),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class Trip:
    """A booked leg of one vehicle between two locations.

    Times are timezone-aware UTC datetimes.
    """

    trip_id: str
    vehicle_id: str
    departure_location_code: str
    destination_location_code: str
    departure_at: datetime
    arrival_at: datetime
    status: TripStatus = TripStatus.SCHEDULED

    def __post_init__(self) -> None:
        if not self.departure_at < self.arrival_at:
            raise ValueError(
                f"Trip {self.trip_id}: departure {self.departure_at.isoformat()} "
                f"must precede arrival {self.arrival_at.isoformat()}"
            )

    @property
    def is_active(self) -> bool:
        return self.status is not TripStatus.CANCELLED

    def in_progress_at(self, at: datetime) -> bool:
        return self.departure_at <= at < self.arrival_at

    def with_status(self, status: TripStatus) -> "Trip":
        if not self.status.can_transition_to(status):
            raise ValueError(
                f"Trip {self.trip_id}: cannot move from {self.status.value} to {status.value}"
            )
        return replace(self, status=status)
