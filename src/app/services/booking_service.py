from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable
from uuid import uuid4

from src.app.ports.output import ITripRepository, TripQuery
from src.app.services.availability_service import (
    AvailabilityService,
    read_fleet_snapshot,
)
from src.app.services.location_service import LocationService
from src.domain.algorithms.availability import find_immediately_available
from src.domain.algorithms.geo_utils import (
    arrival_time,
    format_duration,
    parse_iso_time,
    utc_now,
)
from src.domain.exceptions import (
    ConflictError,
    NotFoundError,
    TransactionConflict,
    UnavailableError,
    ValidationError,
)
from src.domain.models import (
    IN_TRANSIT,
    BookingConfirmation,
    BookingOutcome,
    BookingProposal,
    Location,
    Trip,
    TripStatus,
    TripStatusView,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BookingService:
    """Use cases for booking, cancelling and inspecting trips.

    A request ends either confirmed (a SCHEDULED trip is written inside a
    serializable store transaction) or with an unsaved proposal for the
    earliest time any vehicle can depart from the requested place.
    """

    location_service: LocationService
    availability_service: AvailabilityService
    trips: ITripRepository

    booking_horizon_days: int = 365
    max_booking_attempts: int = 3
    clock: Callable[[], datetime] = utc_now

    def request_trip(
        self,
        *,
        departure_location_code: str,
        destination_location_code: str,
        departure_at: str | datetime,
    ) -> BookingOutcome:
        logger.info(
            "Requesting trip from %s to %s at %s",
            departure_location_code,
            destination_location_code,
            departure_at,
        )

        origin, destination, depart_at = self._validate_request(
            departure_location_code, destination_location_code, departure_at
        )
        route = self.location_service.distance_between(origin, destination)
        arrive_at = arrival_time(depart_at, route.distance_miles)

        for attempt in range(1, self.max_booking_attempts + 1):
            try:
                trip = self._book_if_available(origin, destination, depart_at, arrive_at)
            except TransactionConflict:
                logger.warning(
                    "Booking %s->%s at %s lost a concurrent transaction (attempt %d/%d)",
                    origin.code,
                    destination.code,
                    depart_at.isoformat(),
                    attempt,
                    self.max_booking_attempts,
                )
                continue

            if trip is not None:
                return BookingConfirmation(trip=trip)
            break
        else:
            raise ConflictError(
                "Could not complete booking due to concurrent requests; please retry"
            )

        logger.info("No vehicle available at requested time, finding alternatives")
        return self._propose_alternative(origin, destination, depart_at)

    def _validate_request(
        self,
        departure_location_code: str,
        destination_location_code: str,
        departure_at: str | datetime,
    ) -> tuple[Location, Location, datetime]:
        origin, destination = self.location_service.validate_codes(
            departure_location_code, destination_location_code
        )
        if origin.code == destination.code:
            raise ValidationError("Departure and destination cannot be the same")

        depart_at = parse_iso_time(departure_at)
        now = self.clock()
        if depart_at <= now:
            raise ValidationError("Departure time must be in the future")
        if depart_at > now + timedelta(days=self.booking_horizon_days):
            raise ValidationError(
                f"Cannot book trips more than {self.booking_horizon_days} days in advance"
            )
        return origin, destination, depart_at

    def _book_if_available(
        self,
        origin: Location,
        destination: Location,
        depart_at: datetime,
        arrive_at: datetime,
    ) -> Trip | None:
        # The availability read and the insert share one transaction.
        with self.trips.serializable() as tx:
            fleet = read_fleet_snapshot(tx)
            available = find_immediately_available(fleet, origin.code, depart_at)
            if not available:
                return None

            vehicle = available[0]
            logger.info("Selected vehicle %s for immediate departure", vehicle.vehicle_id)
            trip = Trip(
                trip_id=str(uuid4()),
                vehicle_id=vehicle.vehicle_id,
                departure_location_code=origin.code,
                destination_location_code=destination.code,
                departure_at=depart_at,
                arrival_at=arrive_at,
                status=TripStatus.SCHEDULED,
            )
            tx.insert_trip(trip)

        logger.info(
            "Trip %s created (%s, %s->%s, %s)",
            trip.trip_id,
            trip.vehicle_id,
            trip.departure_location_code,
            trip.destination_location_code,
            format_duration(trip.arrival_at - trip.departure_at),
        )
        return trip

    def _propose_alternative(
        self, origin: Location, destination: Location, after: datetime
    ) -> BookingProposal:
        slot = self.availability_service.earliest_alternative(
            origin.code, destination.code, after
        )
        if slot is None:
            raise UnavailableError(
                "No vehicles available for this route. All vehicles are fully booked."
            )

        route = self.location_service.distance_between(origin, destination)
        proposal = BookingProposal(
            vehicle_id=slot.vehicle_id,
            departure_location_code=origin.code,
            destination_location_code=destination.code,
            departure_at=slot.departure_at,
            arrival_at=arrival_time(slot.departure_at, route.distance_miles),
        )
        logger.info(
            "Proposing %s on %s instead of %s",
            proposal.departure_at.isoformat(),
            proposal.vehicle_id,
            after.isoformat(),
        )
        return proposal

    def cancel_trip(self, trip_id: str) -> Trip:
        now = self.clock()
        trip = self.get_trip(trip_id)
        _ensure_cancellable(trip, now)

        updated = self.trips.transition_status(
            trip_id,
            from_statuses=(TripStatus.SCHEDULED,),
            to_status=TripStatus.CANCELLED,
            departs_after=now,
        )
        if updated is None:
            # Lost a race with another cancel or the reconciler; report why.
            _ensure_cancellable(self.get_trip(trip_id), now)
            raise ConflictError("Trip changed while cancelling; please retry")

        logger.info("Trip %s cancelled successfully", trip_id)
        return updated

    def get_trip(self, trip_id: str) -> Trip:
        trip = self.trips.get_trip(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return trip

    def trip_status(self, trip_id: str) -> TripStatusView:
        trip = self.get_trip(trip_id)
        now = self.clock()

        if trip.status.is_terminal:
            return TripStatusView(trip=trip, effective_status=trip.status.value)

        if now >= trip.arrival_at:
            return TripStatusView(trip=trip, effective_status=TripStatus.COMPLETED.value)

        if trip.departure_at <= now:
            return TripStatusView(
                trip=trip,
                effective_status=TripStatus.IN_PROGRESS.value,
                current_location_code=IN_TRANSIT,
                position=self.availability_service.position_of(trip, now),
            )

        return TripStatusView(trip=trip, effective_status=trip.status.value)

    def list_trips(self, query: TripQuery | None = None) -> tuple[Trip, ...]:
        return self.trips.list_trips(query)


def _ensure_cancellable(trip: Trip, now: datetime) -> None:
    if trip.status is TripStatus.CANCELLED:
        raise ConflictError("Trip is already cancelled")
    if trip.status is TripStatus.COMPLETED:
        raise ConflictError("Cannot cancel a completed trip")
    if trip.status is TripStatus.IN_PROGRESS or trip.departure_at <= now:
        raise ConflictError("Cannot cancel a trip that has already departed")
