"""
Request correlation IDs.

Every HTTP request gets a short ID, taken from the ``X-Correlation-ID``
request header when the publisher sends one. The ID is available to log
formatters for the duration of the request and is echoed back in the
response header, so a publisher can find the log lines of its publish.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"
CORRELATION_ID_LENGTH = 8

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID to each request and its response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        cid = (
            request.headers.get(CORRELATION_ID_HEADER) or uuid.uuid4().hex
        )[:CORRELATION_ID_LENGTH]

        token = correlation_id.set(cid)
        try:
            response = await call_next(request)
        finally:
            correlation_id.reset(token)

        response.headers[CORRELATION_ID_HEADER] = cid
        return response


def get_correlation_id() -> str:
    """Correlation ID of the current request, empty outside a request."""
    return correlation_id.get()
