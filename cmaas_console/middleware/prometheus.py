"""ASGI middleware that records Prometheus metrics for every HTTP request."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from cmaas_console.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

# Scraped or polled constantly; not worth a label of their own.
_SKIP_PATHS = frozenset({"/api/health", "/metrics"})


def _normalise_path(path: str) -> str:
    """Collapse numeric id segments to keep cardinality bounded.

    /api/v1/content-types/7/entries/42  →  /api/v1/content-types/{id}/entries/{id}
    """
    parts = path.rstrip("/").split("/")
    return "/".join("{id}" if part.isdigit() else part for part in parts) or "/"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Records request count, duration, and in-progress gauge."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method

        if path in _SKIP_PATHS:
            return await call_next(request)

        endpoint = _normalise_path(path)

        http_requests_in_progress.labels(method=method).inc()
        start = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
        finally:
            elapsed = time.perf_counter() - start
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(elapsed)
            http_requests_in_progress.labels(method=method).dec()

        return response
