"""Pydantic models for the /api school routes."""
from pydantic import BaseModel, Field, field_validator

from src.data.schools_repo import SchoolRecord
from src.ranking.service import AnnotatedRecord

DISTANCE_UNIT = "km"


def _coordinate(v, label: str, limit: int) -> float:
    if v is None or (isinstance(v, str) and not v.strip()):
        raise ValueError(f"{label} is required")
    if isinstance(v, bool):
        raise ValueError(f"{label} must be a valid number")
    try:
        value = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a valid number") from None
    if not (-limit <= value <= limit):
        raise ValueError(f"{label} must be between -{limit} and {limit} degrees")
    return value


class AddSchoolRequest(BaseModel):
    name: str
    address: str
    # Optional only so a missing value reaches the validators and gets their message
    latitude: float | None = Field(default=None, validate_default=True)
    longitude: float | None = Field(default=None, validate_default=True)

    @field_validator("name")
    @classmethod
    def name_length(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("School name is required")
        if len(v) < 2:
            raise ValueError("School name must be at least 2 characters long")
        if len(v) > 255:
            raise ValueError("School name cannot exceed 255 characters")
        return v

    @field_validator("address")
    @classmethod
    def address_length(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("School address is required")
        if len(v) < 5:
            raise ValueError("Address must be at least 5 characters long")
        if len(v) > 500:
            raise ValueError("Address cannot exceed 500 characters")
        return v

    @field_validator("latitude", mode="before")
    @classmethod
    def latitude_range(cls, v) -> float:
        return _coordinate(v, "Latitude", 90)

    @field_validator("longitude", mode="before")
    @classmethod
    def longitude_range(cls, v) -> float:
        return _coordinate(v, "Longitude", 180)


class SchoolData(BaseModel):
    id: int
    name: str
    address: str
    latitude: float
    longitude: float
    created_at: str

    @classmethod
    def from_record(cls, r: SchoolRecord) -> "SchoolData":
        return cls(
            id=r.school_id,
            name=r.name,
            address=r.address,
            latitude=r.lat,
            longitude=r.lng,
            created_at=r.created_at,
        )


class SchoolWithDistance(SchoolData):
    distance: float
    distanceUnit: str = DISTANCE_UNIT

    @classmethod
    def from_annotated(cls, a: AnnotatedRecord) -> "SchoolWithDistance":
        r = a.record
        return cls(
            id=r.school_id,
            name=r.name,
            address=r.address,
            latitude=r.lat,
            longitude=r.lng,
            created_at=r.created_at,
            distance=a.distance_km,
        )


class UserLocation(BaseModel):
    latitude: float
    longitude: float


class SearchCriteria(BaseModel):
    latitude: float
    longitude: float
    radius: float
    unit: str = DISTANCE_UNIT


class ListSummary(BaseModel):
    totalSchools: int
    closestSchool: str
    closestDistance: float
    farthestSchool: str
    farthestDistance: float


class NearbySummary(BaseModel):
    totalSchoolsInRadius: int
    totalSchoolsInDatabase: int
    closestSchool: str
    closestDistance: float
    farthestInRadius: str
    farthestDistance: float


class SchoolResponse(BaseModel):
    success: bool = True
    message: str
    data: SchoolData
    timestamp: str


class ListSchoolsResponse(BaseModel):
    success: bool = True
    message: str
    data: list[SchoolWithDistance]
    userLocation: UserLocation
    summary: ListSummary
    timestamp: str


class NearbySchoolsResponse(BaseModel):
    success: bool = True
    message: str
    data: list[SchoolWithDistance]
    searchCriteria: SearchCriteria
    summary: NearbySummary
    timestamp: str
