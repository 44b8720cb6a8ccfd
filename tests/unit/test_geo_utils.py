from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.domain.algorithms.geo_utils import (
    arrival_time,
    distance_miles,
    format_duration,
    haversine_distance_miles,
    interpolate_position,
    known_distance_miles,
    parse_iso_time,
    travel_duration,
    travel_duration_minutes,
)
from src.domain.exceptions import ValidationError
from src.domain.models.geo import GeoPoint

JFK = GeoPoint(lat=40.6413, lon=-73.7781)
LAX = GeoPoint(lat=33.9416, lon=-118.4085)


def test_haversine_zero_for_identical_points() -> None:
    assert haversine_distance_miles(JFK, JFK) == 0.0


def test_haversine_is_symmetric_and_reasonable_scale() -> None:
    # 1 degree of latitude is about 69 miles.
    a = GeoPoint(lat=0.0, lon=0.0)
    b = GeoPoint(lat=1.0, lon=0.0)

    d1 = haversine_distance_miles(a, b)
    d2 = haversine_distance_miles(b, a)

    assert d1 == d2
    assert 68.0 < d1 < 70.0
    assert 2400.0 < haversine_distance_miles(JFK, LAX) < 2550.0


def test_known_pairs_win_in_both_directions() -> None:
    assert known_distance_miles("JFK", "LAX") == 2475.79
    assert known_distance_miles("lax", "jfk") == 2475.79
    assert known_distance_miles("SFO", "LAX") == 347.42
    assert known_distance_miles("JFK", "ORD") is None

    assert distance_miles("SFO", GeoPoint(lat=37.6213, lon=-122.379), "JFK", JFK) == 2586.48


def test_unknown_pair_falls_back_to_haversine() -> None:
    ord_ = GeoPoint(lat=41.9742, lon=-87.9073)
    assert distance_miles("JFK", JFK, "ORD", ord_) == haversine_distance_miles(JFK, ord_)


def test_travel_duration_rounds_to_whole_milliseconds() -> None:
    assert travel_duration(2475.79) == timedelta(milliseconds=8_912_844)
    assert travel_duration(347.42) == timedelta(milliseconds=1_250_712)
    assert travel_duration_minutes(2475.79) == 149
    assert format_duration(travel_duration(2475.79)) == "2h 29m"
    assert format_duration(timedelta(minutes=21)) == "21m"


def test_arrival_time_adds_duration() -> None:
    depart = datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)
    assert arrival_time(depart, 2475.79) == depart + timedelta(milliseconds=8_912_844)


def test_interpolate_position_clamps_and_interpolates() -> None:
    depart = datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)
    arrive = depart + timedelta(hours=2)
    origin = GeoPoint(lat=0.0, lon=0.0)
    destination = GeoPoint(lat=10.0, lon=-20.0)

    before = interpolate_position(depart, arrive, origin, destination, depart - timedelta(minutes=5))
    assert before.point == origin
    assert before.progress == 0.0

    at_departure = interpolate_position(depart, arrive, origin, destination, depart)
    assert at_departure.point == origin

    halfway = interpolate_position(depart, arrive, origin, destination, depart + timedelta(hours=1))
    assert halfway.point == GeoPoint(lat=5.0, lon=-10.0)
    assert halfway.progress == 0.5

    nearly = interpolate_position(depart, arrive, origin, destination, arrive - timedelta(milliseconds=1))
    assert nearly.point.lat == pytest.approx(10.0, abs=1e-5)
    assert nearly.point.lon == pytest.approx(-20.0, abs=1e-5)

    after = interpolate_position(depart, arrive, origin, destination, arrive + timedelta(hours=1))
    assert after.point == destination
    assert after.progress == 1.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2030-01-02T10:00:00Z", datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)),
        ("2030-01-02T10:00:00", datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)),
        ("2030-01-02T12:00:00+02:00", datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_iso_time_normalizes_to_utc(raw: str, expected: datetime) -> None:
    parsed = parse_iso_time(raw)
    assert parsed == expected
    assert parsed.utcoffset() == timedelta(0)


@pytest.mark.parametrize("raw", ["tomorrow", "", "2030-13-45T99:00"])
def test_parse_iso_time_rejects_malformed_values(raw: str) -> None:
    with pytest.raises(ValidationError, match="Invalid date format"):
        parse_iso_time(raw)


def test_interpolate_position_rounds_every_result() -> None:
    depart = datetime(2030, 1, 2, 10, 0, tzinfo=timezone.utc)
    arrive = depart + timedelta(hours=2)
    origin = GeoPoint(lat=40.64131234, lon=-73.77818765)
    destination = GeoPoint(lat=33.94169876, lon=-118.40851234)

    start = interpolate_position(depart, arrive, origin, destination, depart)
    end = interpolate_position(depart, arrive, origin, destination, arrive)

    assert start.point == GeoPoint(lat=40.641312, lon=-73.778188)
    assert end.point == GeoPoint(lat=33.941699, lon=-118.408512)
