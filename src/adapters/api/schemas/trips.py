from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

TripStatusLiteral = Literal["SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED"]


class GeoPointSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class CurrentLocationSchema(BaseModel):
    code: str
    lat: float
    lon: float
    progress: float | None = None


class TripRequestSchema(BaseModel):
    departure_location_code: str = Field(..., min_length=3, max_length=3)
    destination_location_code: str = Field(..., min_length=3, max_length=3)
    # Kept as text so malformed instants surface as booking validation errors.
    departure_at: str


class TripSchema(BaseModel):
    trip_id: str | None = None
    vehicle_id: str
    departure_location_code: str
    destination_location_code: str
    departure_at: datetime
    arrival_at: datetime
    status: str
    current_location: CurrentLocationSchema | None = None


class TripRequestResultSchema(TripSchema):
    message: str | None = None
    is_proposal: bool = False


class ReconcileResultSchema(BaseModel):
    started: int
    completed: int
    updated: int


class ErrorSchema(BaseModel):
    detail: str
    error: str | None = None
