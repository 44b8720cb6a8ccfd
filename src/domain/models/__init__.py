from .booking import (
    BookingConfirmation,
    BookingOutcome,
    BookingProposal,
    InterpolatedPosition,
    LocationDistance,
    NextTrip,
    ReconcileResult,
    TripStatusView,
    VehicleAvailability,
    VehicleLocation,
)
from .geo import GeoPoint
from .location import IN_TRANSIT, Location
from .trip import Trip, TripStatus
from .vehicle import Vehicle

__all__ = [
    "BookingConfirmation",
    "BookingOutcome",
    "BookingProposal",
    "GeoPoint",
    "IN_TRANSIT",
    "InterpolatedPosition",
    "Location",
    "LocationDistance",
    "NextTrip",
    "ReconcileResult",
    "Trip",
    "TripStatus",
    "TripStatusView",
    "Vehicle",
    "VehicleAvailability",
    "VehicleLocation",
]
