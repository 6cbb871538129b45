"""Monitoring endpoints: liveness and Prometheus metrics."""

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from imagecast.dependencies import HubDep, RegistryDep

router = APIRouter(tags=["monitoring"])


class HealthResponse(BaseModel):
    """Relay status as reported by /health."""

    status: str
    viewers: int
    has_image: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
)
async def health_check(hub: HubDep, registry: RegistryDep) -> HealthResponse:
    """
    Report whether the relay is up.

    The relay has no backing services, so answering at all means healthy.
    The viewer count and whether an image is cached are included for
    dashboards.
    """
    return HealthResponse(
        status="healthy",
        viewers=len(registry),
        has_image=hub.current_image() is not None,
    )


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics endpoint",
)
async def metrics() -> Response:
    """Expose publish, delivery and HTTP metrics in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
