from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import Vehicle


class IVehicleRepository(ABC):
    """Port for fleet vehicles."""

    @abstractmethod
    def list_vehicles(self) -> tuple[Vehicle, ...]:
        """Return all vehicles ordered by id."""

    @abstractmethod
    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        raise NotImplementedError

    @abstractmethod
    def update_home_location(self, vehicle_id: str, location_code: str) -> None:
        """Atomically overwrite the vehicle's resting location."""
