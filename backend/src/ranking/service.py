"""
Proximity ranking over an already-fetched list of schools.

Pure and stateless: no I/O, no logging. The radius filter uses the unrounded
distance; results carry the distance rounded half-up to 2 decimals and are
sorted on that rounded value.
"""
import math
from typing import NamedTuple, Sequence

from src.data.geo import GeoPoint, distance_km
from src.data.schools_repo import SchoolRecord

LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0
RADIUS_KM_MAX = 20000.0
DISTANCE_DECIMALS = 2
EMPTY_NAME = "None"


class InvalidParameterError(ValueError):
    """A radius search parameter is outside its allowed range."""

    def __init__(self, field: str, bound: str, value: float):
        self.field = field
        self.bound = bound
        self.value = value
        super().__init__(f"{field} must be {bound} (got {value})")


class AnnotatedRecord(NamedTuple):
    record: SchoolRecord
    distance_km: float


class RankingSummary(NamedTuple):
    total: int
    closest_name: str
    closest_distance_km: float
    farthest_name: str
    farthest_distance_km: float


class RankedResult(NamedTuple):
    items: list[AnnotatedRecord]
    summary: RankingSummary


class RadiusResult(NamedTuple):
    items: list[AnnotatedRecord]
    summary: RankingSummary
    radius_km: float
    total_in_database: int
    total_in_radius: int


def _with_distances(reference: GeoPoint, records: Sequence[SchoolRecord]) -> list[tuple[float, SchoolRecord]]:
    return [(distance_km(reference, r.location), r) for r in records]


def _round_km(d: float) -> float:
    # Half-up, so 0.125 -> 0.13 (round() would give 0.12)
    scale = 10 ** DISTANCE_DECIMALS
    return math.floor(d * scale + 0.5) / scale


def _annotate(with_dist: list[tuple[float, SchoolRecord]]) -> list[AnnotatedRecord]:
    items = [AnnotatedRecord(record=r, distance_km=_round_km(d)) for d, r in with_dist]
    # Sort on the displayed distance; list.sort is stable, so equal values keep input order
    items.sort(key=lambda a: a.distance_km)
    return items


def _summarize(items: list[AnnotatedRecord]) -> RankingSummary:
    if not items:
        return RankingSummary(0, EMPTY_NAME, 0, EMPTY_NAME, 0)
    first, last = items[0], items[-1]
    return RankingSummary(
        total=len(items),
        closest_name=first.record.name,
        closest_distance_km=first.distance_km,
        farthest_name=last.record.name,
        farthest_distance_km=last.distance_km,
    )


def rank_by_proximity(reference: GeoPoint, records: Sequence[SchoolRecord]) -> RankedResult:
    """Every record annotated with its distance from reference, nearest first."""
    items = _annotate(_with_distances(reference, records))
    return RankedResult(items=items, summary=_summarize(items))


def validate_radius_search(reference: GeoPoint, radius_km: float) -> None:
    # Written as "not (in range)" so NaN fails every check
    if not (radius_km > 0):
        raise InvalidParameterError("radius_km", "> 0", radius_km)
    if not (radius_km <= RADIUS_KM_MAX):
        raise InvalidParameterError("radius_km", f"<= {RADIUS_KM_MAX:g}", radius_km)
    if not (LAT_MIN <= reference.lat <= LAT_MAX):
        raise InvalidParameterError("latitude", f"between {LAT_MIN:g} and {LAT_MAX:g}", reference.lat)
    if not (LNG_MIN <= reference.lng <= LNG_MAX):
        raise InvalidParameterError("longitude", f"between {LNG_MIN:g} and {LNG_MAX:g}", reference.lng)


def within_radius(reference: GeoPoint, radius_km: float, records: Sequence[SchoolRecord]) -> RadiusResult:
    """
    Records whose distance from reference is <= radius_km (edge inclusive), nearest first.
    Raises InvalidParameterError when radius or reference is out of range.
    """
    validate_radius_search(reference, radius_km)
    kept = [(d, r) for d, r in _with_distances(reference, records) if d <= radius_km]
    items = _annotate(kept)
    return RadiusResult(
        items=items,
        summary=_summarize(items),
        radius_km=radius_km,
        total_in_database=len(records),
        total_in_radius=len(items),
    )
