from .location_repository import ILocationRepository
from .trip_repository import IBookingTransaction, ITripRepository, TripQuery
from .vehicle_repository import IVehicleRepository

__all__ = [
    "IBookingTransaction",
    "ILocationRepository",
    "ITripRepository",
    "IVehicleRepository",
    "TripQuery",
]
