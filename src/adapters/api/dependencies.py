from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends

from src.adapters.persistence import (
    DynamoDbFleetStore,
    InMemoryFleetStore,
    seed_demo_fleet,
)
from src.adapters.settings import FleetRuntimeConfig
from src.app.services.availability_service import AvailabilityService
from src.app.services.booking_service import BookingService
from src.app.services.location_service import LocationService
from src.app.services.status_reconciler import StatusReconciler
from src.domain.algorithms.geo_utils import utc_now

FleetStore = InMemoryFleetStore | DynamoDbFleetStore


@lru_cache(maxsize=1)
def get_runtime_config() -> FleetRuntimeConfig:
    return FleetRuntimeConfig.from_env()


def build_fleet_store(config: FleetRuntimeConfig) -> FleetStore:
    if config.store_backend == "dynamodb":
        return DynamoDbFleetStore()

    store = InMemoryFleetStore()
    if config.seed_demo:
        seed_demo_fleet(store)
    return store


@lru_cache(maxsize=1)
def get_fleet_store() -> FleetStore:
    # One store per process; the in-memory backend would otherwise forget
    # every booking between requests.
    return build_fleet_store(get_runtime_config())


def get_clock() -> Callable[[], datetime]:
    return utc_now


def get_location_service(
    store: FleetStore = Depends(get_fleet_store),
) -> LocationService:
    return LocationService(locations=store)


def get_availability_service(
    store: FleetStore = Depends(get_fleet_store),
    location_service: LocationService = Depends(get_location_service),
) -> AvailabilityService:
    return AvailabilityService(
        vehicles=store, trips=store, location_service=location_service
    )


def get_booking_service(
    store: FleetStore = Depends(get_fleet_store),
    location_service: LocationService = Depends(get_location_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
    config: FleetRuntimeConfig = Depends(get_runtime_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingService:
    return BookingService(
        location_service=location_service,
        availability_service=availability_service,
        trips=store,
        booking_horizon_days=config.booking_horizon_days,
        max_booking_attempts=config.max_booking_attempts,
        clock=clock,
    )


def get_status_reconciler(
    store: FleetStore = Depends(get_fleet_store),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> StatusReconciler:
    return StatusReconciler(trips=store, vehicles=store, clock=clock)
