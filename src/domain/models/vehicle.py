from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Vehicle:
    vehicle_id: str
    name: str
    # Where the vehicle rests if it has no further trips. Only the status
    # reconciler rewrites it; the timeline is authoritative.
    home_location_code: str
