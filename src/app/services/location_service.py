from __future__ import annotations

from dataclasses import dataclass

from src.app.ports.output import ILocationRepository
from src.domain.algorithms.geo_utils import distance_miles, travel_duration_minutes
from src.domain.exceptions import NotFoundError
from src.domain.models import Location, LocationDistance


@dataclass(slots=True)
class LocationService:
    locations: ILocationRepository

    def list_locations(self) -> tuple[Location, ...]:
        return self.locations.list_locations()

    def get_location(self, code: str) -> Location:
        location = self.locations.get_location(code.strip().upper())
        if location is None:
            raise NotFoundError(f"Location with code {code} not found")
        return location

    def validate_codes(self, *codes: str) -> tuple[Location, ...]:
        """Resolve codes to locations, reporting every unknown code at once."""

        found: list[Location] = []
        missing: list[str] = []
        for code in codes:
            normalized = code.strip().upper()
            location = self.locations.get_location(normalized)
            if location is None:
                if normalized not in missing:
                    missing.append(normalized)
            else:
                found.append(location)

        if missing:
            raise NotFoundError(f"Invalid location codes: {', '.join(missing)}")
        return tuple(found)

    def distance_between(self, a: Location, b: Location) -> LocationDistance:
        miles = distance_miles(a.code, a.point, b.code, b.point)
        return LocationDistance(
            from_code=a.code,
            to_code=b.code,
            distance_miles=miles,
            travel_time_minutes=travel_duration_minutes(miles),
        )

    def distances_from(self, code: str) -> tuple[LocationDistance, ...]:
        origin = self.get_location(code)
        out = [
            self.distance_between(origin, other)
            for other in self.locations.list_locations()
            if other.code != origin.code
        ]
        out.sort(key=lambda d: (d.distance_miles, d.to_code))
        return tuple(out)
