"""
Request body size limit.

Images are buffered in memory before they are published, so publish bodies
larger than ``MAX_REQUEST_BODY_SIZE`` are refused from their
``Content-Length`` before any of the body is read.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from imagecast.logging import logger
from imagecast.schemas.errors import ErrorCode, ErrorEnvelope, HTTPErrorResponse
from imagecast.settings import app_settings


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Answers 413 with the error envelope for oversized request bodies."""

    def __init__(self, app: ASGIApp, max_size: int | None = None):
        """
        Args:
            app: The ASGI application.
            max_size: Largest accepted body in bytes, defaults to
                `MAX_REQUEST_BODY_SIZE`.
        """
        super().__init__(app)
        if max_size is None:
            max_size = app_settings.MAX_REQUEST_BODY_SIZE
        self.max_size = max_size

    def _too_large(self, size: int) -> JSONResponse:
        logger.warning(
            f"Rejected {size} byte request body, limit is {self.max_size} bytes"
        )
        body = HTTPErrorResponse(
            detail=ErrorEnvelope(
                code=ErrorCode.PAYLOAD_TOO_LARGE,
                msg=f"Request body too large. Maximum allowed: {self.max_size} bytes",
                details={"size": size, "max_size": self.max_size},
            )
        )
        return JSONResponse(
            content=body.model_dump(mode="json"),
            status_code=413,  # Payload Too Large
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        content_length = request.headers.get("content-length", "")

        # A malformed header is left to the server to reject
        if content_length.isdigit() and int(content_length) > self.max_size:
            return self._too_large(int(content_length))

        return await call_next(request)
