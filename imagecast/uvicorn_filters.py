"""Access log filtering for uvicorn."""

import logging


class ExcludeMetricsFilter(logging.Filter):
    """
    Drops uvicorn access log lines for monitoring endpoints.

    Prometheus scrapes and health checks hit the relay every few seconds;
    the paths in ``LOG_EXCLUDED_PATHS`` are kept out of the access log.
    """

    def __init__(self, excluded_paths: list[str] | None = None):
        super().__init__()
        if excluded_paths is None:
            from imagecast.settings import app_settings

            excluded_paths = app_settings.LOG_EXCLUDED_PATHS
        # Access lines read '... "GET /metrics HTTP/1.1" 200'
        self._needles = [f" {path} " for path in excluded_paths]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(needle in message for needle in self._needles)
