from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from src.adapters.api.dependencies import (
    get_availability_service,
    get_clock,
    get_location_service,
)
from src.adapters.api.schemas.fleet import (
    LocationDistanceSchema,
    LocationSchema,
    NextTripSchema,
    VehicleAvailabilitySchema,
    VehicleLocationSchema,
)
from src.adapters.api.schemas.trips import CurrentLocationSchema, GeoPointSchema
from src.app.services.availability_service import AvailabilityService
from src.app.services.location_service import LocationService
from src.domain.algorithms.geo_utils import parse_iso_time

router = APIRouter(tags=["fleet"])


@router.get("/locations", response_model=list[LocationSchema])
def list_locations(
    service: LocationService = Depends(get_location_service),
) -> list[LocationSchema]:
    return [
        LocationSchema(
            code=loc.code,
            location=GeoPointSchema(lat=loc.point.lat, lon=loc.point.lon),
        )
        for loc in service.list_locations()
    ]


@router.get("/locations/{code}/distances", response_model=list[LocationDistanceSchema])
def location_distances(
    code: str,
    service: LocationService = Depends(get_location_service),
) -> list[LocationDistanceSchema]:
    return [
        LocationDistanceSchema(
            from_code=d.from_code,
            to_code=d.to_code,
            distance_miles=d.distance_miles,
            travel_time_minutes=d.travel_time_minutes,
        )
        for d in service.distances_from(code)
    ]


@router.get("/vehicles/availability", response_model=list[VehicleAvailabilitySchema])
def fleet_availability(
    at: datetime | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
    clock=Depends(get_clock),
) -> list[VehicleAvailabilitySchema]:
    when = parse_iso_time(at) if at else clock()
    return [
        VehicleAvailabilitySchema(
            vehicle_id=a.vehicle_id,
            location_code=a.location_code,
            available_from=a.available_from,
            next_trip=(
                NextTripSchema(
                    trip_id=a.next_trip.trip_id,
                    departure_at=a.next_trip.departure_at,
                    destination_location_code=a.next_trip.destination_location_code,
                )
                if a.next_trip
                else None
            ),
        )
        for a in service.fleet_availability(when)
    ]


@router.get("/vehicles/{vehicle_id}/location", response_model=VehicleLocationSchema)
def vehicle_location(
    vehicle_id: str,
    at: datetime | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
    clock=Depends(get_clock),
) -> VehicleLocationSchema:
    when = parse_iso_time(at) if at else clock()
    loc = service.vehicle_location(vehicle_id, when)
    return VehicleLocationSchema(
        vehicle_id=loc.vehicle_id,
        at=loc.at,
        location_code=loc.location_code,
        current_location=(
            CurrentLocationSchema(
                code=loc.location_code,
                lat=loc.position.point.lat,
                lon=loc.position.point.lon,
                progress=loc.position.progress,
            )
            if loc.position
            else None
        ),
    )
