"""Tests for proximity ranking and radius search."""
import math

import pytest

from src.data.geo import GeoPoint, distance_km
from src.data.schools_repo import SchoolRecord
from src.ranking.service import (
    InvalidParameterError,
    RADIUS_KM_MAX,
    _round_km,
    rank_by_proximity,
    within_radius,
)

NEW_DELHI = GeoPoint(28.6139, 77.2090)


def _school(school_id: int, name: str, lat: float, lng: float) -> SchoolRecord:
    return SchoolRecord(
        school_id=school_id,
        name=name,
        address=f"{name} address",
        lat=lat,
        lng=lng,
        created_at="2025-01-01T00:00:00+00:00",
    )


DELHI = _school(1, "Delhi School", 28.7041, 77.1025)
MUMBAI = _school(2, "Mumbai School", 19.0760, 72.8777)
CONNAUGHT = _school(3, "Connaught School", 28.6304, 77.2245)


# --- rank_by_proximity ---


def test_rank_empty_returns_sentinels():
    result = rank_by_proximity(NEW_DELHI, [])
    assert result.items == []
    s = result.summary
    assert s.total == 0
    assert s.closest_name == "None"
    assert s.closest_distance_km == 0
    assert s.farthest_name == "None"
    assert s.farthest_distance_km == 0


def test_rank_sorted_ascending_and_summary():
    # Farthest first in input to make sure the engine re-sorts
    result = rank_by_proximity(NEW_DELHI, [MUMBAI, DELHI, CONNAUGHT])
    names = [a.record.name for a in result.items]
    assert names == ["Connaught School", "Delhi School", "Mumbai School"]
    distances = [a.distance_km for a in result.items]
    assert all(x <= y for x, y in zip(distances, distances[1:]))
    assert result.summary.total == 3
    assert result.summary.closest_name == "Connaught School"
    assert result.summary.farthest_name == "Mumbai School"
    assert result.summary.farthest_distance_km == distances[-1]


def test_rank_distances_rounded_to_two_decimals():
    result = rank_by_proximity(NEW_DELHI, [DELHI, MUMBAI])
    for a in result.items:
        raw = distance_km(NEW_DELHI, a.record.location)
        assert a.distance_km == _round_km(raw)
        assert abs(a.distance_km - raw) <= 0.005 + 1e-9


def test_rank_does_not_mutate_input():
    records = [MUMBAI, DELHI]
    rank_by_proximity(NEW_DELHI, records)
    assert records == [MUMBAI, DELHI]


def test_rank_ties_preserve_input_order():
    a = _school(10, "First", 28.70, 77.10)
    b = _school(11, "Second", 28.70, 77.10)
    c = _school(12, "Third", 28.70, 77.10)
    result = rank_by_proximity(NEW_DELHI, [b, a, c])
    assert [x.record.school_id for x in result.items] == [11, 10, 12]


def test_rank_delhi_and_mumbai_scenario():
    result = rank_by_proximity(NEW_DELHI, [MUMBAI, DELHI])
    assert result.items[-1].record.name == "Mumbai School"
    assert 1140.0 < result.items[-1].distance_km < 1160.0
    assert 10.0 < result.items[0].distance_km < 25.0


# --- within_radius ---


def test_within_radius_includes_delhi_at_25_km():
    result = within_radius(NEW_DELHI, 25, [DELHI, MUMBAI])
    assert [a.record.name for a in result.items] == ["Delhi School"]
    assert result.total_in_radius == 1
    assert result.total_in_database == 2
    assert result.radius_km == 25


def test_within_radius_excludes_delhi_at_10_km():
    result = within_radius(NEW_DELHI, 10, [DELHI, MUMBAI])
    assert result.items == []
    assert result.total_in_radius == 0
    assert result.total_in_database == 2
    assert result.summary.closest_name == "None"
    assert result.summary.farthest_distance_km == 0


@pytest.mark.parametrize("radius_km", [1, 100, 500, 1000])
def test_within_radius_excludes_mumbai_up_to_1000_km(radius_km):
    result = within_radius(NEW_DELHI, radius_km, [DELHI, MUMBAI, CONNAUGHT])
    assert "Mumbai School" not in [a.record.name for a in result.items]


def test_within_radius_is_subset_and_partition():
    records = [DELHI, MUMBAI, CONNAUGHT, _school(4, "Agra School", 27.1767, 78.0081)]
    radius_km = 200.0
    result = within_radius(NEW_DELHI, radius_km, records)
    kept_ids = {a.record.school_id for a in result.items}
    for r in records:
        d = distance_km(NEW_DELHI, r.location)
        if r.school_id in kept_ids:
            assert d <= radius_km
        else:
            assert d > radius_km
    distances = [a.distance_km for a in result.items]
    assert distances == sorted(distances)


def test_within_radius_boundary_is_inclusive():
    # A school ~0.05 km north of the reference; radius equal to its exact computed distance
    school = _school(5, "Edge School", NEW_DELHI.lat + 0.05 / 111.195, NEW_DELHI.lng)
    edge = distance_km(NEW_DELHI, school.location)
    assert edge == pytest.approx(0.05, abs=1e-3)
    result = within_radius(NEW_DELHI, edge, [school])
    assert [a.record.name for a in result.items] == ["Edge School"]
    assert result.items[0].distance_km == 0.05


def test_within_radius_ties_preserve_input_order():
    a = _school(20, "A", 28.62, 77.21)
    b = _school(21, "B", 28.62, 77.21)
    result = within_radius(NEW_DELHI, 5, [b, a])
    assert [x.record.school_id for x in result.items] == [21, 20]


def test_within_radius_max_radius_allowed():
    result = within_radius(NEW_DELHI, RADIUS_KM_MAX, [DELHI, MUMBAI])
    assert result.total_in_radius == 2


@pytest.mark.parametrize(
    "reference, radius_km, field",
    [
        (NEW_DELHI, 0, "radius_km"),
        (NEW_DELHI, -5, "radius_km"),
        (NEW_DELHI, 20001, "radius_km"),
        (NEW_DELHI, math.nan, "radius_km"),
        (GeoPoint(91, 77.2090), 50, "latitude"),
        (GeoPoint(-90.5, 77.2090), 50, "latitude"),
        (GeoPoint(28.6139, -181), 50, "longitude"),
        (GeoPoint(28.6139, 180.01), 50, "longitude"),
    ],
)
def test_within_radius_invalid_parameters(reference, radius_km, field):
    with pytest.raises(InvalidParameterError) as exc_info:
        within_radius(reference, radius_km, [DELHI])
    assert exc_info.value.field == field
    assert field in str(exc_info.value)


def test_invalid_parameter_is_value_error():
    with pytest.raises(ValueError, match="radius_km must be > 0"):
        within_radius(NEW_DELHI, 0, [])


def test_within_radius_empty_records():
    result = within_radius(NEW_DELHI, 50, [])
    assert result.items == []
    assert result.total_in_database == 0
    assert result.summary.closest_name == "None"


def _km_north(school_id: int, name: str, km: float) -> SchoolRecord:
    # Pure latitude offset: one degree is EARTH_RADIUS_KM * pi / 180 km
    return _school(school_id, name, NEW_DELHI.lat + km / (6371.0 * math.pi / 180.0), NEW_DELHI.lng)


def test_rank_equal_rounded_distances_keep_input_order():
    farther = _km_north(1, "Farther", 10.004)
    nearer = _km_north(2, "Nearer", 10.001)
    assert distance_km(NEW_DELHI, farther.location) > distance_km(NEW_DELHI, nearer.location)
    result = rank_by_proximity(NEW_DELHI, [farther, nearer])
    assert [(a.record.school_id, a.distance_km) for a in result.items] == [(1, 10.0), (2, 10.0)]


def test_within_radius_equal_rounded_distances_keep_input_order():
    farther = _km_north(1, "Farther", 10.004)
    nearer = _km_north(2, "Nearer", 10.001)
    result = within_radius(NEW_DELHI, 20, [farther, nearer])
    assert [a.record.school_id for a in result.items] == [1, 2]


def test_within_radius_filters_on_unrounded_distance():
    # Displays as 10.0 but lies just outside a 10 km radius
    outside = _km_north(1, "Outside", 10.004)
    result = within_radius(NEW_DELHI, 10, [outside])
    assert result.items == []


@pytest.mark.parametrize(
    "raw, expected",
    [(0.125, 0.13), (0.625, 0.63), (1.004, 1.0), (0.0, 0.0), (1148.0948, 1148.09)],
)
def test_round_km_half_up(raw, expected):
    assert _round_km(raw) == expected
