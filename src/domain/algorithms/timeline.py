from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from src.domain.models import IN_TRANSIT, Trip


@dataclass(frozen=True, slots=True)
class Timeline:
    """One vehicle's non-cancelled trips in chronological order.

    Built once per resolution from freshly fetched trips. Location is always
    derived from here, never stored for future instants, so speculative
    queries (alternative proposals) don't touch persisted state.
    """

    trips: tuple[Trip, ...]

    @classmethod
    def from_trips(cls, trips: Iterable[Trip]) -> "Timeline":
        active = [t for t in trips if t.is_active]
        active.sort(key=lambda t: (t.departure_at, t.arrival_at, t.trip_id))
        return cls(trips=tuple(active))

    def trip_in_progress(self, at: datetime) -> Trip | None:
        for trip in self.trips:
            if trip.departure_at > at:
                break
            if trip.in_progress_at(at):
                return trip
        return None

    def departs_at(self, at: datetime) -> bool:
        return any(t.departure_at == at for t in self.trips)

    def last_arrived_by(self, at: datetime) -> Trip | None:
        best: Trip | None = None
        for trip in self.trips:
            if trip.arrival_at <= at and (best is None or trip.arrival_at > best.arrival_at):
                best = trip
        return best

    def location_at(self, home_location_code: str, at: datetime) -> str:
        """Location code at `at`, or IN_TRANSIT.

        Once no trip is in progress at `at`, any trip departing between the
        latest arrival by `at` and `at` itself would still be in progress, so that latest
        arrival alone fixes where the vehicle rests.
        """

        if self.trip_in_progress(at) is not None:
            return IN_TRANSIT

        last = self.last_arrived_by(at)
        if last is None:
            return home_location_code
        return last.destination_location_code

    def next_time_at(
        self, location_code: str, after: datetime, home_location_code: str
    ) -> datetime | None:
        """Earliest instant >= `after` at which the vehicle is at the place and
        free to depart, or None if the schedule never brings it there."""

        if self.location_at(home_location_code, after) == location_code and not self.departs_at(after):
            return after

        arrivals = sorted(
            (
                t
                for t in self.trips
                if t.destination_location_code == location_code and t.arrival_at > after
            ),
            key=lambda t: t.arrival_at,
        )
        for trip in arrivals:
            if not self.departs_at(trip.arrival_at):
                return trip.arrival_at
        return None

    def next_departure_after(self, at: datetime) -> Trip | None:
        for trip in self.trips:
            if trip.departure_at > at:
                return trip
        return None
