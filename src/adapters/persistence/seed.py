from __future__ import annotations

import logging
from typing import Protocol

from src.domain.models import GeoPoint, Location, Vehicle

logger = logging.getLogger(__name__)

DEMO_LOCATIONS: tuple[Location, ...] = (
    Location(code="JFK", point=GeoPoint(lat=40.6413, lon=-73.7781)),
    Location(code="SFO", point=GeoPoint(lat=37.6213, lon=-122.379)),
    Location(code="LAX", point=GeoPoint(lat=33.9416, lon=-118.4085)),
)

DEMO_VEHICLES: tuple[Vehicle, ...] = (
    Vehicle(vehicle_id="SS-001", name="Galactic Voyager", home_location_code="JFK"),
    Vehicle(vehicle_id="SS-002", name="Star Hopper", home_location_code="JFK"),
    Vehicle(vehicle_id="SS-003", name="Cosmic Cruiser", home_location_code="SFO"),
)


class SeedableStore(Protocol):
    def put_location(self, location: Location) -> None: ...

    def put_vehicle(self, vehicle: Vehicle) -> None: ...


def seed_demo_fleet(store: SeedableStore) -> None:
    for location in DEMO_LOCATIONS:
        store.put_location(location)
    for vehicle in DEMO_VEHICLES:
        store.put_vehicle(vehicle)
    logger.info(
        "Seeded %d locations and %d vehicles", len(DEMO_LOCATIONS), len(DEMO_VEHICLES)
    )


def main() -> None:
    from src.adapters.persistence.dynamodb_fleet_store import DynamoDbFleetStore

    logging.basicConfig(level=logging.INFO)
    store = DynamoDbFleetStore()
    store.create_tables()
    seed_demo_fleet(store)


if __name__ == "__main__":
    main()
