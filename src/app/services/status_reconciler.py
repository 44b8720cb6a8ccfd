from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from src.app.ports.output import ITripRepository, IVehicleRepository, TripQuery
from src.domain.algorithms.geo_utils import utc_now
from src.domain.models import ReconcileResult, TripStatus

logger = logging.getLogger(__name__)

_OPEN_STATUSES = frozenset({TripStatus.SCHEDULED, TripStatus.IN_PROGRESS})


@dataclass(slots=True)
class StatusReconciler:
    """Advances trip statuses by the clock.

    Invoked on a fixed interval by an outside trigger. Both sweeps only touch
    trips whose window has elapsed since the last run, so re-running with no
    new elapsed trips changes nothing. Cancelled trips are never selected.
    """

    trips: ITripRepository
    vehicles: IVehicleRepository
    clock: Callable[[], datetime] = utc_now

    def reconcile(self, now: datetime | None = None) -> ReconcileResult:
        now = now or self.clock()
        started = self._start_departed(now)
        completed = self._complete_arrived(now)

        result = ReconcileResult(started=started, completed=completed)
        logger.info(
            "Updated %d trip statuses (%d started, %d completed)",
            result.updated,
            started,
            completed,
        )
        return result

    def _start_departed(self, now: datetime) -> int:
        departed = self.trips.list_trips(
            TripQuery(statuses=frozenset({TripStatus.SCHEDULED}), departs_before=now)
        )
        count = 0
        for trip in departed:
            if now >= trip.arrival_at:
                continue  # left for the completion sweep
            updated = self.trips.transition_status(
                trip.trip_id,
                from_statuses=(TripStatus.SCHEDULED,),
                to_status=TripStatus.IN_PROGRESS,
            )
            if updated is not None:
                count += 1
        return count

    def _complete_arrived(self, now: datetime) -> int:
        arrived = self.trips.list_trips(
            TripQuery(statuses=_OPEN_STATUSES, arrives_before=now)
        )
        count = 0
        # Arrival order, so a vehicle ends up at its latest destination.
        for trip in sorted(arrived, key=lambda t: (t.arrival_at, t.trip_id)):
            updated = self.trips.transition_status(
                trip.trip_id,
                from_statuses=_OPEN_STATUSES,
                to_status=TripStatus.COMPLETED,
            )
            if updated is None:
                continue
            self.vehicles.update_home_location(
                updated.vehicle_id, updated.destination_location_code
            )
            count += 1
        return count
