"""
Error envelope models returned by the HTTP endpoints.

Example HTTP error response:
    {
        "detail": {
            "code": "invalid_payload",
            "msg": "Image payload is empty",
            "details": null
        }
    }
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_PAYLOAD = "invalid_payload"
    NOT_FOUND = "not_found"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    INTERNAL_ERROR = "internal_error"


class ErrorEnvelope(BaseModel):
    """
    Error structure embedded in every HTTP error response.

    Attributes:
        code: Machine-readable error code for client-side error handling.
        msg: Human-readable error description for display.
        details: Optional additional context.
    """

    code: ErrorCode = Field(..., description="Machine-readable error code")
    msg: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional additional error context and metadata",
    )


class HTTPErrorResponse(BaseModel):
    """HTTP error response body, shaped like FastAPI's `HTTPException` output."""

    detail: ErrorEnvelope
