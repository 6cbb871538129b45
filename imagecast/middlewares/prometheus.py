"""
Prometheus metrics middleware for HTTP requests.

Requests are labelled by the route template they matched, so arbitrary
URLs sent to the relay cannot create new time series.
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import BaseRoute

from imagecast.utils.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

UNMATCHED_ENDPOINT = "<unmatched>"


def _endpoint_label(request: Request) -> str:
    # The router stores the matched route in the shared scope
    route: BaseRoute | None = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ENDPOINT


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Counts requests and records their duration per method and route."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        method = request.method
        status_code = 500
        in_progress = http_requests_in_progress.labels(method=method)
        in_progress.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            in_progress.dec()
            endpoint = _endpoint_label(request)
            http_request_duration_seconds.labels(
                method=method, endpoint=endpoint
            ).observe(time.perf_counter() - start_time)
            http_requests_total.labels(
                method=method, endpoint=endpoint, status_code=status_code
            ).inc()
