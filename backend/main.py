import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from settings import get_settings
from src.data.geo import GeoPoint
from src.data.schools_repo import check_db, count_schools, create_school, find_duplicate, get_school, init_db, list_schools
from src.middleware import RequestLoggingMiddleware
from src.monitoring import get_metrics
from src.ranking.service import LAT_MAX, LAT_MIN, LNG_MAX, LNG_MIN, InvalidParameterError, rank_by_proximity, within_radius
from src.schools.models import (
    AddSchoolRequest,
    ListSchoolsResponse,
    ListSummary,
    NearbySchoolsResponse,
    NearbySummary,
    SchoolData,
    SchoolResponse,
    SchoolWithDistance,
    SearchCriteria,
    UserLocation,
)

settings = get_settings()
BACKEND_ROOT = Path(__file__).resolve().parent
SCHOOLS_DB = BACKEND_ROOT / settings.schools_db_path

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

API_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /metrics",
    "GET /api/health",
    "POST /api/addSchool",
    "GET /api/listSchools",
    "GET /api/schoolsNearby",
    "GET /api/schools/{school_id}",
]
NEARBY_EXAMPLE = "GET /api/schoolsNearby?latitude=28.6139&longitude=77.2090&radius=10"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate_lat_lng(lat: float, lng: float) -> None:
    if not (LAT_MIN <= lat <= LAT_MAX):
        raise HTTPException(status_code=400, detail=f"latitude must be between {LAT_MIN:g} and {LAT_MAX:g}")
    if not (LNG_MIN <= lng <= LNG_MAX):
        raise HTTPException(status_code=400, detail=f"longitude must be between {LNG_MIN:g} and {LNG_MAX:g}")


def _error_body(message: str, **extra) -> dict:
    body = {"success": False, "message": message}
    body.update(extra)
    body["timestamp"] = _now_iso()
    return body


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(SCHOOLS_DB)
    logger.info("telemetry startup db=%s schools=%s", SCHOOLS_DB, count_schools(SCHOOLS_DB))
    yield
    logger.info("telemetry shutdown")


app = FastAPI(title=settings.app_name, version=settings.version, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("telemetry rate_limited path=%s client=%s", request.url.path, get_remote_address(request))
    response = JSONResponse(
        status_code=429,
        content=_error_body(
            "Too many requests from your IP address. Please try again later.",
            limit=str(exc.detail),
        ),
    )
    return request.app.state.limiter._inject_headers(response, getattr(request.state, "view_rate_limit", None))


@app.exception_handler(InvalidParameterError)
def invalid_parameter_handler(request: Request, exc: InvalidParameterError):
    logger.info("telemetry invalid_parameter path=%s field=%s", request.url.path, exc.field)
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid search parameters", errors=[str(exc)], field=exc.field),
    )


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    """Return 400 (not FastAPI's 422) with one readable message per failed field."""
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return JSONResponse(status_code=400, content=_error_body("Invalid JSON format in request body"))
    messages = []
    for e in errors:
        field = ".".join(str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path"))
        msg = str(e.get("msg", "")).removeprefix("Value error, ")
        messages.append(f"{field}: {msg}" if field else msg)
    logger.info("telemetry validation_failed path=%s errors=%s", request.url.path, len(messages))
    return JSONResponse(
        status_code=400,
        content=_error_body("Please check your input data", errors=messages),
    )


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content=_error_body(
                f"The endpoint '{request.url.path}' was not found",
                availableEndpoints=API_ENDPOINTS,
            ),
        )
    if isinstance(exc.detail, dict):
        detail = dict(exc.detail)
        content = _error_body(detail.pop("message", ""), **detail)
    else:
        content = _error_body(str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500)."""
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    extra = {"error": str(exc)} if settings.debug else {}
    return JSONResponse(
        status_code=500,
        content=_error_body("Something went wrong on our server", path=request.url.path, **extra),
    )


# Order: last added = outermost. So RequestLogging runs first, then CORS, then rate limiting.
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/")
def root(request: Request):
    return {
        "success": True,
        "message": f"Welcome to {settings.app_name}!",
        "version": settings.version,
        "endpoints": {
            "addSchool": "POST /api/addSchool",
            "listSchools": "GET /api/listSchools?latitude={lat}&longitude={lon}",
            "schoolsNearby": "GET /api/schoolsNearby?latitude={lat}&longitude={lon}&radius={km}",
            "health": "GET /health",
        },
        "examples": {
            "addSchool": {
                "url": "POST /api/addSchool",
                "body": "JSON with name, address, latitude, longitude",
            },
            "listSchools": {
                "url": "GET /api/listSchools?latitude=28.6139&longitude=77.2090",
                "description": "Get all schools sorted by distance",
            },
            "schoolsNearby": {
                "url": NEARBY_EXAMPLE,
                "description": "Get schools within 10km radius",
            },
        },
    }


@app.get("/health")
@limiter.exempt
def health(request: Request):
    logger.info("telemetry route=health")
    connected = check_db(SCHOOLS_DB)
    body = {
        "success": connected,
        "message": f"{settings.app_name} is healthy" if connected else "Database unavailable",
        "timestamp": _now_iso(),
        "database": {
            "status": "CONNECTED" if connected else "DISCONNECTED",
            "provider": "SQLite",
            "schools": count_schools(SCHOOLS_DB) if connected else 0,
        },
        "uptime_seconds": get_metrics()["uptime_seconds"],
    }
    return JSONResponse(status_code=200 if connected else 503, content=body)


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Simple metrics for monitoring (request counts, uptime). Production: use Prometheus exporter if needed."""
    return get_metrics()


# --- School routes ---


@app.get("/api/health")
@limiter.exempt
def api_health(request: Request):
    return {
        "success": True,
        "message": "School API routes are working!",
        "timestamp": _now_iso(),
        "version": settings.version,
        "availableEndpoints": [e for e in API_ENDPOINTS if " /api/" in e],
    }


@app.post("/api/addSchool", response_model=SchoolResponse, status_code=201)
def add_school(request: Request, body: AddSchoolRequest):
    duplicate = find_duplicate(SCHOOLS_DB, body.name, body.latitude, body.longitude)
    if duplicate is not None:
        logger.info("telemetry route=add_school duplicate_of=%s", duplicate.school_id)
        raise HTTPException(
            status_code=409,
            detail="A school with this name or location already exists in our database",
        )
    rec = create_school(
        SCHOOLS_DB,
        name=body.name,
        address=body.address,
        lat=body.latitude,
        lng=body.longitude,
    )
    logger.info("telemetry route=add_school school_id=%s", rec.school_id)
    return SchoolResponse(
        message="School successfully added to database!",
        data=SchoolData.from_record(rec),
        timestamp=_now_iso(),
    )


@app.get("/api/listSchools", response_model=ListSchoolsResponse)
def list_schools_by_proximity(request: Request, latitude: float | None = None, longitude: float | None = None):
    """All schools sorted by distance from (latitude, longitude)."""
    if latitude is None or longitude is None:
        raise HTTPException(
            status_code=400,
            detail="Your location (latitude and longitude) is required to find nearby schools",
        )
    _validate_lat_lng(latitude, longitude)
    schools = list_schools(SCHOOLS_DB)
    result = rank_by_proximity(GeoPoint(latitude, longitude), schools)
    logger.info("telemetry route=list_schools count=%s", result.summary.total)
    s = result.summary
    if s.total:
        message = f"Found {s.total} schools, sorted by proximity to your location"
    else:
        message = "No schools found in the database"
    return ListSchoolsResponse(
        message=message,
        data=[SchoolWithDistance.from_annotated(a) for a in result.items],
        userLocation=UserLocation(latitude=latitude, longitude=longitude),
        summary=ListSummary(
            totalSchools=s.total,
            closestSchool=s.closest_name,
            closestDistance=s.closest_distance_km,
            farthestSchool=s.farthest_name,
            farthestDistance=s.farthest_distance_km,
        ),
        timestamp=_now_iso(),
    )


@app.get("/api/schoolsNearby", response_model=NearbySchoolsResponse)
def schools_nearby(
    request: Request,
    latitude: float | None = None,
    longitude: float | None = None,
    radius: float | None = None,
):
    """Schools within `radius` km of (latitude, longitude), nearest first. Radius defaults to settings."""
    if latitude is None or longitude is None:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Please provide both latitude and longitude",
                "example": NEARBY_EXAMPLE,
                "requiredParams": ["latitude", "longitude"],
                "optionalParams": [f"radius (default: {settings.default_radius_km:g}km)"],
            },
        )
    radius_km = settings.default_radius_km if radius is None else radius
    schools = list_schools(SCHOOLS_DB)
    result = within_radius(GeoPoint(latitude, longitude), radius_km, schools)
    logger.info(
        "telemetry route=schools_nearby radius_km=%s in_radius=%s total=%s",
        radius_km,
        result.total_in_radius,
        result.total_in_database,
    )
    s = result.summary
    if result.total_in_database:
        message = f"Found {result.total_in_radius} schools within {radius_km:g} km of your location"
    else:
        message = "No schools found in database"
    return NearbySchoolsResponse(
        message=message,
        data=[SchoolWithDistance.from_annotated(a) for a in result.items],
        searchCriteria=SearchCriteria(latitude=latitude, longitude=longitude, radius=radius_km),
        summary=NearbySummary(
            totalSchoolsInRadius=result.total_in_radius,
            totalSchoolsInDatabase=result.total_in_database,
            closestSchool=s.closest_name,
            closestDistance=s.closest_distance_km,
            farthestInRadius=s.farthest_name,
            farthestDistance=s.farthest_distance_km,
        ),
        timestamp=_now_iso(),
    )


@app.get("/api/schools/{school_id}", response_model=SchoolResponse)
def get_school_by_id(request: Request, school_id: int):
    rec = get_school(SCHOOLS_DB, school_id)
    if rec is None:
        raise HTTPException(status_code=404, detail=f"School {school_id} not found.")
    return SchoolResponse(
        message="School found",
        data=SchoolData.from_record(rec),
        timestamp=_now_iso(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
