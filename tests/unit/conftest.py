from __future__ import annotations

import pytest

from src.adapters.persistence import InMemoryFleetStore, seed_demo_fleet
from src.app.services.availability_service import AvailabilityService
from src.app.services.booking_service import BookingService
from src.app.services.location_service import LocationService
from src.app.services.status_reconciler import StatusReconciler
from tests.unit.helpers import NOW, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(now=NOW)


@pytest.fixture
def store() -> InMemoryFleetStore:
    s = InMemoryFleetStore()
    seed_demo_fleet(s)
    return s


@pytest.fixture
def location_service(store: InMemoryFleetStore) -> LocationService:
    return LocationService(locations=store)


@pytest.fixture
def availability_service(
    store: InMemoryFleetStore, location_service: LocationService
) -> AvailabilityService:
    return AvailabilityService(
        vehicles=store, trips=store, location_service=location_service
    )


@pytest.fixture
def booking_service(
    store: InMemoryFleetStore,
    location_service: LocationService,
    availability_service: AvailabilityService,
    clock: FakeClock,
) -> BookingService:
    return BookingService(
        location_service=location_service,
        availability_service=availability_service,
        trips=store,
        clock=clock,
    )


@pytest.fixture
def reconciler(store: InMemoryFleetStore, clock: FakeClock) -> StatusReconciler:
    return StatusReconciler(trips=store, vehicles=store, clock=clock)
