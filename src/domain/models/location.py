from __future__ import annotations

from dataclasses import dataclass

from .geo import GeoPoint

IN_TRANSIT = "IN_TRANSIT"


@dataclass(frozen=True, slots=True)
class Location:
    """A named place (IATA-style 3 letter code) with coordinates."""

    code: str
    point: GeoPoint

    def __post_init__(self) -> None:
        if len(self.code) != 3:
            raise ValueError(f"Location code must be exactly 3 characters: {self.code!r}")
