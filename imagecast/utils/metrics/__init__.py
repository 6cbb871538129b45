"""
Prometheus metrics definitions.

All metrics are re-exported here so callers can import them directly:

    from imagecast.utils.metrics import images_published_total
"""

from imagecast.utils.metrics.broadcast import (
    broadcast_duration_seconds,
    image_deliveries_total,
    image_publish_rejected_total,
    image_size_bytes,
    images_published_total,
    viewer_connections_total,
    viewers_active,
    viewers_pruned_total,
)
from imagecast.utils.metrics.http import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

__all__ = [
    "broadcast_duration_seconds",
    "image_deliveries_total",
    "image_publish_rejected_total",
    "image_size_bytes",
    "images_published_total",
    "viewer_connections_total",
    "viewers_active",
    "viewers_pruned_total",
    "http_request_duration_seconds",
    "http_requests_in_progress",
    "http_requests_total",
]
