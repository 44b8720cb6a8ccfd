from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import Location


class ILocationRepository(ABC):
    """Port for the fixed set of places vehicles travel between."""

    @abstractmethod
    def list_locations(self) -> tuple[Location, ...]:
        """Return all locations ordered by code."""

    @abstractmethod
    def get_location(self, code: str) -> Location | None:
        raise NotImplementedError
