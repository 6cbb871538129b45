"""
Error handler decorator for HTTP endpoints.

Converts AppException instances into HTTPException responses carrying the
error envelope, eliminating duplicate try/except blocks in endpoints.
"""

from functools import wraps
from typing import Any, Callable

from fastapi import HTTPException, status

from imagecast.exceptions import AppException
from imagecast.logging import logger
from imagecast.schemas.errors import ErrorCode, ErrorEnvelope


def handle_http_errors(func: Callable) -> Callable:
    """
    Decorator for HTTP endpoints to convert exceptions to HTTPException.

    AppException instances keep their own status code and error code, any
    other exception is logged and reported as 500 `internal_error`.

    Args:
        func: The HTTP endpoint function to wrap.

    Returns:
        Wrapped function that handles exceptions.

    Example:
        ```python
        @router.post("/api/image")
        @handle_http_errors
        async def publish_image(request: Request, hub: HubDep) -> PublishAck:
            return await hub.publish(await read_image(request))
        ```
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except AppException as ex:
            logger.warning(
                f"AppException in {func.__name__}: {ex.message}",
                extra={"exception_type": type(ex).__name__},
            )
            raise HTTPException(
                status_code=ex.http_status,
                detail=ex.to_http_response().detail.model_dump(mode="json"),
            )
        except HTTPException:
            raise
        except Exception as ex:
            logger.error(
                f"Unexpected error in {func.__name__}: {ex}",
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=ErrorEnvelope(
                    code=ErrorCode.INTERNAL_ERROR,
                    msg="Internal server error",
                ).model_dump(mode="json"),
            )

    return wrapper
