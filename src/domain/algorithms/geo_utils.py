from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from src.domain.exceptions import ValidationError
from src.domain.models import GeoPoint, InterpolatedPosition

EARTH_RADIUS_MILES = 3959.0
CRUISING_SPEED_MPH = 1000.0

_MS_PER_HOUR = 60 * 60 * 1000

# Pre-computed pairs; anything not listed falls back to the haversine formula.
_KNOWN_DISTANCES_MILES: dict[tuple[str, str], float] = {
    ("JFK", "LAX"): 2475.79,
    ("JFK", "SFO"): 2586.48,
    ("LAX", "SFO"): 347.42,
}


def haversine_distance_miles(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in statute miles, rounded to 2 decimals."""

    lat1 = math.radians(a.lat)
    lon1 = math.radians(a.lon)
    lat2 = math.radians(b.lat)
    lon2 = math.radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    )
    return round(2.0 * EARTH_RADIUS_MILES * math.asin(math.sqrt(min(1.0, s))), 2)


def known_distance_miles(from_code: str, to_code: str) -> float | None:
    a = from_code.upper()
    b = to_code.upper()
    return _KNOWN_DISTANCES_MILES.get((a, b), _KNOWN_DISTANCES_MILES.get((b, a)))


def distance_miles(
    from_code: str, from_point: GeoPoint, to_code: str, to_point: GeoPoint
) -> float:
    known = known_distance_miles(from_code, to_code)
    if known is not None:
        return known
    return haversine_distance_miles(from_point, to_point)


def travel_duration(distance: float) -> timedelta:
    # Rounded once, to whole milliseconds.
    return timedelta(milliseconds=round(distance * _MS_PER_HOUR / CRUISING_SPEED_MPH))


def travel_duration_minutes(distance: float) -> int:
    return round(distance * 60 / CRUISING_SPEED_MPH)


def arrival_time(departure_at: datetime, distance: float) -> datetime:
    return departure_at + travel_duration(distance)


def interpolate_position(
    departure_at: datetime,
    arrival_at: datetime,
    origin: GeoPoint,
    destination: GeoPoint,
    now: datetime,
) -> InterpolatedPosition:
    """Straight-line position between two points by elapsed time.

    Clamped to the endpoints outside [departure_at, arrival_at].
    """

    total_s = (arrival_at - departure_at).total_seconds()
    elapsed_s = (now - departure_at).total_seconds()

    if elapsed_s <= 0 or total_s <= 0:
        return InterpolatedPosition(point=origin.rounded(6), progress=0.0)
    if elapsed_s >= total_s:
        return InterpolatedPosition(point=destination.rounded(6), progress=1.0)

    t = elapsed_s / total_s
    point = GeoPoint(
        lat=origin.lat + (destination.lat - origin.lat) * t,
        lon=origin.lon + (destination.lon - origin.lon) * t,
    )
    return InterpolatedPosition(point=point.rounded(6), progress=round(t, 2))


def parse_iso_time(raw: str | datetime) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime.

    Naive values are taken as UTC.
    """

    if isinstance(raw, datetime):
        value = raw
    else:
        text = (raw or "").strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid date format: {raw}") from None

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_duration(delta: timedelta) -> str:
    total_minutes = round(delta.total_seconds() / 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
