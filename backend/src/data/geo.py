"""
Haversine distance for school proximity queries.
"""
import math
from typing import NamedTuple

# Earth radius in km (mean spherical radius)
EARTH_RADIUS_KM = 6371.0


class GeoPoint(NamedTuple):
    lat: float
    lng: float


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Return great-circle distance between two points in kilometers.
    Arguments in degrees; callers validate ranges.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    # Rounding can push a slightly outside [0, 1] for identical or antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    return haversine_distance_km(a.lat, a.lng, b.lat, b.lng)
