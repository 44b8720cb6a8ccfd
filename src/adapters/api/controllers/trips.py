from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response

from src.adapters.api.dependencies import get_booking_service, get_status_reconciler
from src.adapters.api.schemas.trips import (
    CurrentLocationSchema,
    ErrorSchema,
    ReconcileResultSchema,
    TripRequestResultSchema,
    TripRequestSchema,
    TripSchema,
    TripStatusLiteral,
)
from src.app.ports.output import TripQuery
from src.app.services.booking_service import BookingService
from src.app.services.status_reconciler import StatusReconciler
from src.domain.algorithms.geo_utils import parse_iso_time
from src.domain.models import (
    BookingConfirmation,
    BookingOutcome,
    Trip,
    TripStatus,
    TripStatusView,
)

router = APIRouter(prefix="/trips", tags=["trips"])

_ERRORS = {
    400: {"model": ErrorSchema},
    404: {"model": ErrorSchema},
    409: {"model": ErrorSchema},
}


def _trip_to_schema(trip: Trip) -> TripSchema:
    return TripSchema(
        trip_id=trip.trip_id,
        vehicle_id=trip.vehicle_id,
        departure_location_code=trip.departure_location_code,
        destination_location_code=trip.destination_location_code,
        departure_at=trip.departure_at,
        arrival_at=trip.arrival_at,
        status=trip.status.value,
    )


def _outcome_to_schema(outcome: BookingOutcome) -> TripRequestResultSchema:
    if isinstance(outcome, BookingConfirmation):
        return TripRequestResultSchema(**_trip_to_schema(outcome.trip).model_dump())

    return TripRequestResultSchema(
        trip_id=None,
        vehicle_id=outcome.vehicle_id,
        departure_location_code=outcome.departure_location_code,
        destination_location_code=outcome.destination_location_code,
        departure_at=outcome.departure_at,
        arrival_at=outcome.arrival_at,
        status="ALTERNATIVE_TIME_OFFERED",
        message=outcome.message,
        is_proposal=True,
    )


def _status_to_schema(view: TripStatusView) -> TripSchema:
    schema = _trip_to_schema(view.trip)
    schema.status = view.effective_status
    if view.position is not None:
        schema.current_location = CurrentLocationSchema(
            code=view.current_location_code or "",
            lat=view.position.point.lat,
            lon=view.position.point.lon,
            progress=view.position.progress,
        )
    return schema


@router.post("/request", response_model=TripRequestResultSchema, responses=_ERRORS)
def request_trip(
    req: TripRequestSchema,
    service: BookingService = Depends(get_booking_service),
) -> TripRequestResultSchema:
    outcome = service.request_trip(
        departure_location_code=req.departure_location_code,
        destination_location_code=req.destination_location_code,
        departure_at=req.departure_at,
    )
    return _outcome_to_schema(outcome)


@router.get("", response_model=list[TripSchema])
def list_trips(
    vehicle_id: str | None = Query(default=None),
    status: TripStatusLiteral | None = Query(default=None),
    departure_location_code: str | None = Query(default=None),
    destination_location_code: str | None = Query(default=None),
    after: datetime | None = Query(default=None),
    before: datetime | None = Query(default=None),
    service: BookingService = Depends(get_booking_service),
) -> list[TripSchema]:
    query = TripQuery(
        vehicle_id=vehicle_id,
        statuses=frozenset({TripStatus(status)}) if status else None,
        departure_location_code=(
            departure_location_code.upper() if departure_location_code else None
        ),
        destination_location_code=(
            destination_location_code.upper() if destination_location_code else None
        ),
        departs_after=parse_iso_time(after) if after else None,
        departs_before=parse_iso_time(before) if before else None,
    )
    return [_trip_to_schema(t) for t in service.list_trips(query)]


@router.post("/reconcile", response_model=ReconcileResultSchema)
def reconcile_statuses(
    reconciler: StatusReconciler = Depends(get_status_reconciler),
) -> ReconcileResultSchema:
    result = reconciler.reconcile()
    return ReconcileResultSchema(
        started=result.started, completed=result.completed, updated=result.updated
    )


@router.get("/{trip_id}/status", response_model=TripSchema, responses=_ERRORS)
def get_trip_status(
    trip_id: str,
    service: BookingService = Depends(get_booking_service),
) -> TripSchema:
    return _status_to_schema(service.trip_status(trip_id))


@router.delete("/{trip_id}", status_code=204, responses=_ERRORS)
def cancel_trip(
    trip_id: str,
    service: BookingService = Depends(get_booking_service),
) -> Response:
    service.cancel_trip(trip_id)
    return Response(status_code=204)
