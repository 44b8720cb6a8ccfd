from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Sequence

from src.domain.models import Vehicle

from .timeline import Timeline


@dataclass(frozen=True, slots=True)
class FleetSnapshot:
    """Vehicles plus their timelines, read together for one decision."""

    vehicles: tuple[Vehicle, ...]
    timelines: Mapping[str, Timeline]

    @classmethod
    def build(
        cls, vehicles: Sequence[Vehicle], timelines: Mapping[str, Timeline]
    ) -> "FleetSnapshot":
        ordered = tuple(sorted(vehicles, key=lambda v: v.vehicle_id))
        return cls(vehicles=ordered, timelines=dict(timelines))

    def timeline(self, vehicle_id: str) -> Timeline:
        return self.timelines.get(vehicle_id) or Timeline(trips=())


@dataclass(frozen=True, slots=True)
class AlternativeSlot:
    vehicle_id: str
    departure_at: datetime


def is_available(
    vehicle: Vehicle, timeline: Timeline, departure_location_code: str, at: datetime
) -> bool:
    if timeline.location_at(vehicle.home_location_code, at) != departure_location_code:
        return False
    return not timeline.departs_at(at)


def find_immediately_available(
    fleet: FleetSnapshot, departure_location_code: str, at: datetime
) -> list[Vehicle]:
    """Vehicles that can depart from the location at exactly `at`.

    Ordered by vehicle id; the booking coordinator takes the first.
    """

    return [
        v
        for v in fleet.vehicles
        if is_available(v, fleet.timeline(v.vehicle_id), departure_location_code, at)
    ]


def earliest_alternative(
    fleet: FleetSnapshot,
    departure_location_code: str,
    destination_location_code: str,
    after: datetime,
) -> AlternativeSlot | None:
    """Earliest instant >= `after` any vehicle can depart from the location.

    Ties go to the lowest vehicle id. The destination doesn't constrain the
    search; it is kept so callers describe the whole route.
    """

    best: AlternativeSlot | None = None
    for vehicle in fleet.vehicles:
        candidate = fleet.timeline(vehicle.vehicle_id).next_time_at(
            departure_location_code, after, vehicle.home_location_code
        )
        if candidate is None:
            continue
        # Vehicles are visited in id order, so strict < keeps the lowest id.
        if best is None or candidate < best.departure_at:
            best = AlternativeSlot(vehicle_id=vehicle.vehicle_id, departure_at=candidate)
    return best
