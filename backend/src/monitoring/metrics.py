"""In-memory request metrics for the /metrics endpoint: counts by status class and by route, plus latency."""
import time
from collections.abc import MutableMapping
from threading import Lock

_start_time = time.monotonic()
_status_counts: MutableMapping[str, int] = {}
_route_counts: MutableMapping[str, int] = {}
_duration_ms_total = 0.0
_lock = Lock()


def _status_bucket(status_code: int) -> str:
    if 200 <= status_code < 300:
        return "2xx"
    if 400 <= status_code < 500:
        return "4xx"
    if status_code >= 500:
        return "5xx"
    return "other"


def record_request(route: str, status_code: int, duration_ms: float = 0.0) -> None:
    """Count one request. route must be a route template, not a raw URL, to keep the map bounded."""
    global _duration_ms_total
    bucket = _status_bucket(status_code)
    with _lock:
        _status_counts[bucket] = _status_counts.get(bucket, 0) + 1
        _route_counts[route] = _route_counts.get(route, 0) + 1
        _duration_ms_total += duration_ms


def reset_metrics() -> None:
    global _duration_ms_total
    with _lock:
        _status_counts.clear()
        _route_counts.clear()
        _duration_ms_total = 0.0


def get_metrics() -> dict:
    with _lock:
        counts = dict(_status_counts)
        routes = dict(_route_counts)
        duration_total = _duration_ms_total
    total = sum(counts.values())
    return {
        "requests_total": total,
        "requests_2xx": counts.get("2xx", 0),
        "requests_4xx": counts.get("4xx", 0),
        "requests_5xx": counts.get("5xx", 0),
        "requests_by_route": routes,
        "avg_duration_ms": round(duration_total / total, 2) if total else 0.0,
        "uptime_seconds": round(time.monotonic() - _start_time, 1),
    }
