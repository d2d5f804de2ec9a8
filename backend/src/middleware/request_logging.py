"""Request logging middleware: one log line and one metrics sample per request."""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from src.monitoring.metrics import record_request

logger = logging.getLogger(__name__)

# Polled by load balancers; counted in metrics but not logged
QUIET_PATHS = frozenset({"/health", "/metrics", "/favicon.ico"})
UNMATCHED_ROUTE = "unmatched"


def _route_template(request: Request) -> str:
    """Matched route path such as /api/schools/{school_id}; one shared bucket for unmatched URLs."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        path = request.url.path
        record_request(_route_template(request), response.status_code, duration_ms)
        if path not in QUIET_PATHS:
            logger.info(
                "request method=%s path=%s query=%s status=%s duration_ms=%.1f client=%s",
                request.method,
                path,
                request.url.query or "-",
                response.status_code,
                duration_ms,
                _client_ip(request),
            )
        return response
