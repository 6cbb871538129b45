"""
Prometheus metrics for viewer connections and image broadcasts.

This module defines metrics for tracking connected viewers, publishes,
per-viewer delivery outcomes and pruned connections.
"""

from prometheus_client import Counter, Gauge, Histogram

from imagecast.utils.metrics._helpers import get_or_create

# Viewer Connection Metrics
viewers_active = get_or_create(
    Gauge, "viewers_active", "Number of registered viewer connections"
)

viewer_connections_total = get_or_create(
    Counter, "viewer_connections_total", "Total viewer connections accepted"
)

viewers_pruned_total = get_or_create(
    Counter,
    "viewers_pruned_total",
    "Viewer connections removed after a failed delivery",
    ("reason",),  # closed, timeout, error
)

# Publish Metrics
images_published_total = get_or_create(
    Counter, "images_published_total", "Total images accepted for broadcast"
)

image_publish_rejected_total = get_or_create(
    Counter,
    "image_publish_rejected_total",
    "Total publishes rejected as invalid",
)

image_size_bytes = get_or_create(
    Histogram,
    "image_size_bytes",
    "Size of published image payloads in bytes",
    buckets=(1e3, 1e4, 5e4, 1e5, 5e5, 1e6, 5e6, 1e7),
)

image_deliveries_total = get_or_create(
    Counter,
    "image_deliveries_total",
    "Per-viewer image delivery attempts",
    ("outcome",),  # delivered, closed, timeout, error
)

broadcast_duration_seconds = get_or_create(
    Histogram,
    "broadcast_duration_seconds",
    "Time to fan out one published image to all viewers",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
