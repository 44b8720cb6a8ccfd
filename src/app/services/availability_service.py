from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from src.app.ports.output import ITripRepository, IVehicleRepository
from src.app.services.location_service import LocationService
from src.domain.algorithms.availability import (
    AlternativeSlot,
    FleetSnapshot,
    earliest_alternative,
)
from src.domain.algorithms.geo_utils import interpolate_position
from src.domain.algorithms.timeline import Timeline
from src.domain.exceptions import NotFoundError
from src.domain.models import (
    IN_TRANSIT,
    InterpolatedPosition,
    NextTrip,
    Trip,
    Vehicle,
    VehicleAvailability,
    VehicleLocation,
)


class FleetReader(Protocol):
    def list_vehicles(self) -> tuple[Vehicle, ...]: ...

    def list_vehicle_trips(self, vehicle_id: str) -> tuple[Trip, ...]: ...


def read_fleet_snapshot(reader: FleetReader) -> FleetSnapshot:
    """Fetch every vehicle and its trips once, for a single decision."""

    vehicles = reader.list_vehicles()
    timelines = {
        v.vehicle_id: Timeline.from_trips(reader.list_vehicle_trips(v.vehicle_id))
        for v in vehicles
    }
    return FleetSnapshot.build(vehicles, timelines)


@dataclass(slots=True)
class _RepositoryReader:
    vehicles: IVehicleRepository
    trips: ITripRepository

    def list_vehicles(self) -> tuple[Vehicle, ...]:
        return self.vehicles.list_vehicles()

    def list_vehicle_trips(self, vehicle_id: str) -> tuple[Trip, ...]:
        return self.trips.list_vehicle_trips(vehicle_id)


@dataclass(slots=True)
class AvailabilityService:
    """Read-only fleet availability queries.

    Runs outside any transaction; results may be slightly stale, which is
    fine because booking re-checks inside its own transaction.
    """

    vehicles: IVehicleRepository
    trips: ITripRepository
    location_service: LocationService

    def snapshot(self) -> FleetSnapshot:
        return read_fleet_snapshot(_RepositoryReader(self.vehicles, self.trips))

    def earliest_alternative(
        self,
        departure_location_code: str,
        destination_location_code: str,
        after: datetime,
    ) -> AlternativeSlot | None:
        return earliest_alternative(
            self.snapshot(), departure_location_code, destination_location_code, after
        )

    def position_of(self, trip: Trip, at: datetime) -> InterpolatedPosition:
        origin = self.location_service.get_location(trip.departure_location_code)
        destination = self.location_service.get_location(trip.destination_location_code)
        return interpolate_position(
            trip.departure_at, trip.arrival_at, origin.point, destination.point, at
        )

    def vehicle_location(self, vehicle_id: str, at: datetime) -> VehicleLocation:
        vehicle = self.vehicles.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError(f"Vehicle {vehicle_id} not found")

        timeline = Timeline.from_trips(self.trips.list_vehicle_trips(vehicle_id))
        in_flight = timeline.trip_in_progress(at)
        if in_flight is not None:
            return VehicleLocation(
                vehicle_id=vehicle_id,
                at=at,
                location_code=IN_TRANSIT,
                position=self.position_of(in_flight, at),
            )

        return VehicleLocation(
            vehicle_id=vehicle_id,
            at=at,
            location_code=timeline.location_at(vehicle.home_location_code, at),
        )

    def fleet_availability(self, at: datetime) -> tuple[VehicleAvailability, ...]:
        fleet = self.snapshot()
        out: list[VehicleAvailability] = []
        for vehicle in fleet.vehicles:
            timeline = fleet.timeline(vehicle.vehicle_id)
            in_flight = timeline.trip_in_progress(at)
            if in_flight is not None:
                out.append(
                    VehicleAvailability(
                        vehicle_id=vehicle.vehicle_id,
                        location_code=IN_TRANSIT,
                        available_from=in_flight.arrival_at,
                        next_trip=_next_trip(in_flight),
                    )
                )
                continue

            upcoming = timeline.next_departure_after(at)
            out.append(
                VehicleAvailability(
                    vehicle_id=vehicle.vehicle_id,
                    location_code=timeline.location_at(vehicle.home_location_code, at),
                    available_from=at,
                    next_trip=_next_trip(upcoming) if upcoming else None,
                )
            )
        return tuple(out)


def _next_trip(trip: Trip) -> NextTrip:
    return NextTrip(
        trip_id=trip.trip_id,
        departure_at=trip.departure_at,
        destination_location_code=trip.destination_location_code,
    )
