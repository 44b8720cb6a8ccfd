from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import timedelta

import pytest

from src.adapters.persistence import InMemoryFleetStore
from src.adapters.persistence.seed import DEMO_LOCATIONS, DEMO_VEHICLES
from src.app.ports.output import TripQuery
from src.app.services.availability_service import AvailabilityService
from src.app.services.booking_service import BookingService
from src.app.services.location_service import LocationService
from src.domain.algorithms.availability import find_immediately_available
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
    BookingProposal,
    TripStatus,
)
from tests.unit.helpers import JFK_LAX, NOW, TOMORROW_10, FakeClock, make_trip


def _service(store: InMemoryFleetStore, clock: FakeClock, **kwargs) -> BookingService:
    locations = LocationService(locations=store)
    return BookingService(
        location_service=locations,
        availability_service=AvailabilityService(
            vehicles=store, trips=store, location_service=locations
        ),
        trips=store,
        clock=clock,
        **kwargs,
    )


def _seed(store: InMemoryFleetStore, vehicle_count: int) -> InMemoryFleetStore:
    for location in DEMO_LOCATIONS:
        store.put_location(location)
    for vehicle in DEMO_VEHICLES[:vehicle_count]:
        store.put_vehicle(vehicle)
    return store


def _request(service: BookingService, dep: str, dest: str, at) -> object:
    return service.request_trip(
        departure_location_code=dep, destination_location_code=dest, departure_at=at
    )


class _RacingStore(InMemoryFleetStore):
    """Commits a rival booking for SS-001 while the first transaction is open."""

    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    @contextmanager
    def serializable(self):
        self.attempts += 1
        with super().serializable() as tx:
            yield tx
            if self.attempts == 1:
                with InMemoryFleetStore.serializable(self) as rival:
                    rival.insert_trip(
                        make_trip(
                            "rival",
                            "SS-001",
                            "JFK",
                            "SFO",
                            TOMORROW_10,
                            TOMORROW_10 + timedelta(hours=3),
                        )
                    )


class _AlwaysLosingStore(InMemoryFleetStore):
    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    @contextmanager
    def serializable(self):
        self.attempts += 1
        with super().serializable() as tx:
            yield tx
            raise TransactionConflict("lost the race")


def test_request_confirms_first_available_vehicle(booking_service, store) -> None:
    outcome = _request(booking_service, "JFK", "LAX", "2030-01-02T10:00:00Z")

    assert isinstance(outcome, BookingConfirmation)
    trip = outcome.trip
    assert trip.vehicle_id == "SS-001"
    assert trip.departure_at == TOMORROW_10
    assert trip.arrival_at == TOMORROW_10 + JFK_LAX
    assert trip.status is TripStatus.SCHEDULED
    assert store.get_trip(trip.trip_id) == trip


def test_request_normalizes_location_codes(booking_service) -> None:
    outcome = _request(booking_service, "jfk", "sfo", TOMORROW_10)
    assert isinstance(outcome, BookingConfirmation)
    assert outcome.trip.departure_location_code == "JFK"
    assert outcome.trip.destination_location_code == "SFO"


def test_same_slot_goes_to_next_vehicle_then_runs_out(booking_service) -> None:
    first = _request(booking_service, "JFK", "LAX", TOMORROW_10)
    second = _request(booking_service, "JFK", "LAX", TOMORROW_10)

    assert first.trip.vehicle_id == "SS-001"
    assert second.trip.vehicle_id == "SS-002"

    # SS-003 never reaches JFK and neither booked vehicle comes back.
    with pytest.raises(UnavailableError, match="fully booked"):
        _request(booking_service, "JFK", "LAX", TOMORROW_10)


def test_single_vehicle_fleet_gets_alternative_after_return_trip(clock) -> None:
    store = _seed(InMemoryFleetStore(), vehicle_count=1)
    service = _service(store, clock)

    confirmed = _request(service, "JFK", "LAX", TOMORROW_10)
    assert isinstance(confirmed, BookingConfirmation)

    with pytest.raises(UnavailableError):
        _request(service, "JFK", "LAX", TOMORROW_10)

    back_at = TOMORROW_10 + timedelta(hours=5)
    returned = _request(service, "LAX", "JFK", back_at)
    assert isinstance(returned, BookingConfirmation)
    assert returned.trip.vehicle_id == "SS-001"

    proposal = _request(service, "JFK", "LAX", TOMORROW_10)
    assert isinstance(proposal, BookingProposal)
    assert proposal.vehicle_id == "SS-001"
    assert proposal.departure_at == back_at + JFK_LAX
    assert proposal.arrival_at == back_at + 2 * JFK_LAX
    assert "alternative time" in proposal.message

    # Proposals are never stored.
    assert len(store.list_trips()) == 2


@pytest.mark.parametrize(
    ("dep", "dest", "at", "error", "message"),
    [
        ("JFK", "JFK", TOMORROW_10, ValidationError, "cannot be the same"),
        ("JFK", "LAX", NOW - timedelta(minutes=1), ValidationError, "must be in the future"),
        ("JFK", "LAX", NOW, ValidationError, "must be in the future"),
        ("JFK", "LAX", NOW + timedelta(days=366), ValidationError, "365 days in advance"),
        ("JFK", "LAX", "next tuesday", ValidationError, "Invalid date format"),
        ("JFK", "ORD", TOMORROW_10, NotFoundError, "Invalid location codes: ORD"),
        ("XXX", "YYY", TOMORROW_10, NotFoundError, "Invalid location codes: XXX, YYY"),
    ],
)
def test_request_validation(booking_service, store, dep, dest, at, error, message) -> None:
    with pytest.raises(error, match=message):
        _request(booking_service, dep, dest, at)
    assert store.list_trips() == ()


def test_booking_horizon_is_configurable(store, clock) -> None:
    service = _service(store, clock, booking_horizon_days=7)
    with pytest.raises(ValidationError, match="7 days"):
        _request(service, "JFK", "LAX", NOW + timedelta(days=8))


def test_lost_transaction_is_retried_against_fresh_state(clock) -> None:
    store = _seed(_RacingStore(), vehicle_count=2)
    service = _service(store, clock)

    outcome = _request(service, "JFK", "LAX", TOMORROW_10)

    assert store.attempts == 2
    assert isinstance(outcome, BookingConfirmation)
    # SS-001 now departs at that instant, so the retry picks SS-002.
    assert outcome.trip.vehicle_id == "SS-002"
    assert {t.trip_id for t in store.list_trips()} == {"rival", outcome.trip.trip_id}


def test_retries_are_bounded(clock) -> None:
    store = _seed(_AlwaysLosingStore(), vehicle_count=1)
    service = _service(store, clock, max_booking_attempts=3)

    with pytest.raises(ConflictError, match="concurrent requests"):
        _request(service, "JFK", "LAX", TOMORROW_10)

    assert store.attempts == 3
    assert store.list_trips() == ()


def test_concurrent_requests_book_a_vehicle_slot_once(clock) -> None:
    store = _seed(InMemoryFleetStore(), vehicle_count=1)
    service = _service(store, clock)

    workers = 8
    barrier = threading.Barrier(workers)
    outcomes: list[object] = []
    lock = threading.Lock()

    def _book() -> None:
        barrier.wait()
        try:
            result: object = _request(service, "JFK", "LAX", TOMORROW_10)
        except (UnavailableError, ConflictError) as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_book) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    confirmed = [o for o in outcomes if isinstance(o, BookingConfirmation)]
    assert len(outcomes) == workers
    assert len(confirmed) == 1
    assert len(store.list_trips()) == 1


def test_cancel_frees_the_slot(booking_service, availability_service) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip

    cancelled = booking_service.cancel_trip(trip.trip_id)

    assert cancelled.status is TripStatus.CANCELLED
    assert booking_service.get_trip(trip.trip_id).status is TripStatus.CANCELLED
    free = find_immediately_available(availability_service.snapshot(), "JFK", TOMORROW_10)
    assert [v.vehicle_id for v in free] == ["SS-001", "SS-002"]

    again = _request(booking_service, "JFK", "LAX", TOMORROW_10)
    assert again.trip.vehicle_id == "SS-001"


def test_cancel_twice_is_a_conflict(booking_service) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip
    booking_service.cancel_trip(trip.trip_id)

    with pytest.raises(ConflictError, match="already cancelled"):
        booking_service.cancel_trip(trip.trip_id)


def test_cancel_after_departure_is_a_conflict(booking_service, clock) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip
    clock.now = TOMORROW_10

    with pytest.raises(ConflictError, match="already departed"):
        booking_service.cancel_trip(trip.trip_id)
    assert booking_service.get_trip(trip.trip_id).status is TripStatus.SCHEDULED


def test_cancel_completed_trip_is_a_conflict(booking_service, reconciler, clock) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip
    clock.now = TOMORROW_10 + timedelta(hours=3)
    reconciler.reconcile()

    with pytest.raises(ConflictError, match="completed"):
        booking_service.cancel_trip(trip.trip_id)


def test_unknown_trip_is_not_found(booking_service) -> None:
    with pytest.raises(NotFoundError, match="Trip not found"):
        booking_service.cancel_trip("nope")
    with pytest.raises(NotFoundError):
        booking_service.trip_status("nope")


def test_trip_status_tracks_the_clock(booking_service, clock) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip

    view = booking_service.trip_status(trip.trip_id)
    assert view.effective_status == "SCHEDULED"
    assert view.position is None

    clock.now = TOMORROW_10 + JFK_LAX / 2
    view = booking_service.trip_status(trip.trip_id)
    assert view.effective_status == "IN_PROGRESS"
    assert view.current_location_code == IN_TRANSIT
    assert view.position.progress == 0.5
    assert view.position.point.lat == pytest.approx(37.29145)
    assert view.position.point.lon == pytest.approx(-96.0933)

    clock.now = TOMORROW_10 + JFK_LAX
    view = booking_service.trip_status(trip.trip_id)
    assert view.effective_status == "COMPLETED"
    # Stored status only moves when the reconciler runs.
    assert view.trip.status is TripStatus.SCHEDULED


def test_trip_status_of_cancelled_trip(booking_service) -> None:
    trip = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip
    booking_service.cancel_trip(trip.trip_id)
    assert booking_service.trip_status(trip.trip_id).effective_status == "CANCELLED"


def test_list_trips_filters(booking_service) -> None:
    a = _request(booking_service, "JFK", "LAX", TOMORROW_10).trip
    b = _request(booking_service, "SFO", "LAX", TOMORROW_10 + timedelta(hours=1)).trip
    c = _request(booking_service, "JFK", "SFO", TOMORROW_10 + timedelta(hours=2)).trip
    booking_service.cancel_trip(c.trip_id)

    assert [t.trip_id for t in booking_service.list_trips()] == [a.trip_id, b.trip_id, c.trip_id]
    assert [t.trip_id for t in booking_service.list_trips(TripQuery(vehicle_id="SS-003"))] == [
        b.trip_id
    ]
    scheduled = TripQuery(statuses=frozenset({TripStatus.SCHEDULED}))
    assert [t.trip_id for t in booking_service.list_trips(scheduled)] == [a.trip_id, b.trip_id]
    from_jfk = TripQuery(
        departure_location_code="JFK", departs_after=TOMORROW_10 + timedelta(minutes=1)
    )
    assert [t.trip_id for t in booking_service.list_trips(from_jfk)] == [c.trip_id]
