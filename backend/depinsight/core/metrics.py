"""
Prometheus Metrics Collection for depinsight

Metrics for HTTP traffic, calls to the npm registry and OSV, and the size
and outcome of dependency resolutions. Each worker process keeps its own
registry which is scraped independently.
"""

import logging
import re
import time
from importlib.metadata import version as get_version
from typing import Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# =============================================================================
# Application Info Metrics
# =============================================================================

try:
    APP_VERSION = get_version("depinsight")
except Exception:
    APP_VERSION = "unknown"

app_info = Info("depinsight_app", "Application information")
app_info.info({"version": APP_VERSION, "app_name": "depinsight"})

# =============================================================================
# HTTP Request Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

# =============================================================================
# Resolution & Analysis Metrics
# =============================================================================

resolution_packages_resolved = Histogram(
    "resolution_packages_resolved",
    "Number of packages in a resolved dependency graph",
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500),
)

resolution_duration_seconds = Histogram(
    "resolution_duration_seconds",
    "Time to resolve a full dependency graph",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

resolution_skipped_total = Counter(
    "resolution_skipped_total",
    "Dependencies dropped during resolution by reason",
    ["reason"],
)

analysis_failed_queries_total = Counter(
    "analysis_failed_queries_total",
    "Vulnerability queries that failed by phase",
    ["phase"],
)

analysis_vulnerable_packages_total = Counter(
    "analysis_vulnerable_packages_total",
    "Packages reported with at least one known vulnerability",
)

# =============================================================================
# External API Metrics
# =============================================================================

external_api_requests_total = Counter(
    "external_api_requests_total",
    "Total external API requests",
    ["service"],
)

external_api_errors_total = Counter(
    "external_api_errors_total",
    "Total external API errors",
    ["service"],
)

external_api_duration_seconds = Histogram(
    "external_api_duration_seconds",
    "External API request duration in seconds",
    ["service"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to automatically collect HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics for the /metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(request.url.path)

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
        except Exception as e:
            logger.error(f"Error in PrometheusMiddleware: {e}")
            raise
        finally:
            duration = time.time() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                duration
            )
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize URL paths to prevent cardinality explosion.

        Package names and versions are collapsed into placeholders:
          /api/v1/registry/install-size/lodash/v/4.17.21 -> /api/v1/registry/install-size/{pkg}
        """
        return re.sub(r"^(/api/v\d+/registry/[^/]+)/.+$", r"\1/{pkg}", path)


def metrics_response() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
