"""
Custom exception classes for the image relay.

Only `InvalidPayloadError` and `NotFoundError` ever reach an HTTP caller.
`SendFailure` is raised and absorbed inside the broadcast hub: a viewer
that cannot be sent to is pruned, the publisher never sees the error.
"""

from typing import Any

from starlette import status

from imagecast.schemas.errors import ErrorCode, ErrorEnvelope, HTTPErrorResponse


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        http_status: HTTP status code for REST API responses.
        code: Machine-readable error code used in the error envelope.
    """

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Initialize the exception with a message.

        Args:
            message: Human-readable error description.
            details: Optional additional context for the error envelope.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def to_http_response(self) -> HTTPErrorResponse:
        """Convert the exception into the HTTP error envelope."""
        return HTTPErrorResponse(
            detail=ErrorEnvelope(
                code=self.code, msg=self.message, details=self.details
            )
        )


class InvalidPayloadError(AppException):
    """
    Publish input missing or malformed.

    Raised before any state is mutated; the cached image stays as it was.

    HTTP Status: 400 Bad Request
    """

    http_status = status.HTTP_400_BAD_REQUEST
    code = ErrorCode.INVALID_PAYLOAD


class NotFoundError(AppException):
    """
    Resource not found (no image has been published yet).

    HTTP Status: 404 Not Found
    """

    http_status = status.HTTP_404_NOT_FOUND
    code = ErrorCode.NOT_FOUND


class SendFailure(AppException):
    """
    Sending to a single viewer failed.

    Covers transport errors, send timeouts and connections that already
    report themselves closed. Never propagated past the broadcast hub.
    """

    def __init__(self, connection_id: str, reason: str, kind: str = "error"):
        """
        Args:
            connection_id: Identity of the viewer the send was meant for.
            reason: Human-readable cause.
            kind: One of "closed", "timeout" or "error".
        """
        self.connection_id = connection_id
        self.reason = reason
        self.kind = kind
        super().__init__(
            f"Send to viewer {connection_id} failed: {reason}",
            details={"connection_id": connection_id, "reason": reason},
        )
