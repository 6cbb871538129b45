"""
Idempotent Prometheus metric registration.

Metrics are module level objects, so importing their module twice (uvicorn
--reload, several test apps in one process) would otherwise fail with a
duplicate registration error. An already registered collector with the same
name is returned instead.
"""

from typing import Any, TypeVar

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

MetricT = TypeVar("MetricT", Counter, Gauge, Histogram)


def get_or_create(
    metric_type: type[MetricT],
    name: str,
    documentation: str,
    labelnames: tuple[str, ...] = (),
    **kwargs: Any,
) -> MetricT:
    """
    Register a metric, or return the one registered under `name` already.

    Args:
        metric_type: Counter, Gauge or Histogram.
        name: Metric name as exposed on /metrics.
        documentation: HELP text.
        labelnames: Label names of the metric.
        **kwargs: Extra constructor arguments, e.g. `buckets`.
    """
    try:
        return metric_type(name, documentation, labelnames, **kwargs)
    except ValueError:
        # Counters register as "<name>" without the "_total" suffix
        existing = REGISTRY._names_to_collectors.get(
            name
        ) or REGISTRY._names_to_collectors.get(name.removesuffix("_total"))
        if existing is None:
            raise
        return existing
