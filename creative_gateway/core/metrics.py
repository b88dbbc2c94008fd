"""Prometheus metrics for the gateway."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# --- Metrics ---

APP_INFO = Info("app", "Creative Gateway application info")
APP_INFO.info({"version": "1.0.0", "name": "creative_gateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

UPSTREAM_CALLS = Counter(
    "upstream_calls_total",
    "Upstream provider calls by outcome",
    ["provider", "capability", "outcome"],
)

UPSTREAM_LATENCY = Histogram(
    "upstream_call_duration_seconds",
    "Upstream provider call duration in seconds",
    ["provider", "capability"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60],
)

TOKEN_EXCHANGES = Counter(
    "credential_token_exchanges_total",
    "OAuth token exchanges performed by credential stores",
    ["provider", "status"],
)


# --- Middleware ---

# Collapse video task ids to keep label cardinality bounded
_PATH_PREFIXES = ("/api/doubao/videos/tasks/",)


def _normalize_path(path: str) -> str:
    """Replace task ids in paths with {id} to avoid high cardinality."""
    for prefix in _PATH_PREFIXES:
        if path.startswith(prefix) and len(path) > len(prefix):
            return f"{prefix}{{id}}"
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _normalize_path(request.url.path)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
