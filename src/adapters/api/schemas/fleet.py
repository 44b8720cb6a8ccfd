from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from src.adapters.api.schemas.trips import CurrentLocationSchema, GeoPointSchema


class LocationSchema(BaseModel):
    code: str
    location: GeoPointSchema


class LocationDistanceSchema(BaseModel):
    from_code: str
    to_code: str
    distance_miles: float
    travel_time_minutes: int


class NextTripSchema(BaseModel):
    trip_id: str
    departure_at: datetime
    destination_location_code: str


class VehicleAvailabilitySchema(BaseModel):
    vehicle_id: str
    location_code: str
    available_from: datetime
    next_trip: NextTripSchema | None = None


class VehicleLocationSchema(BaseModel):
    vehicle_id: str
    at: datetime
    location_code: str
    current_location: CurrentLocationSchema | None = None
