"""
Prometheus Metrics Module

Provides application metrics using the prometheus_client library.
Metrics are exposed at /metrics endpoint for Prometheus scraping.
"""

import time
from collections.abc import Callable

from prometheus_client import Counter, Gauge, Histogram, Info
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("blog_api_app", "Blog API application information")


def set_app_info(version: str, environment: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment})


# =============================================================================
# HTTP Request Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "blog_api_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "blog_api_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "blog_api_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method"],
)

# =============================================================================
# View Tracking Metrics
# =============================================================================

BLOG_VIEWS_TRACKED_TOTAL = Counter(
    "blog_api_blog_views_tracked_total",
    "Blog views recorded, labelled by whether they counted as unique",
    ["unique"],
)

BLOG_VIEW_TRACKING_FAILURES_TOTAL = Counter(
    "blog_api_blog_view_tracking_failures_total",
    "Blog view tracking attempts that failed and were swallowed",
    ["reason"],
)

APP_UPTIME_SECONDS = Gauge(
    "blog_api_uptime_seconds",
    "Application uptime in seconds",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP request metrics for Prometheus.

    Tracks:
    - Request count by method, endpoint, and status code
    - Request duration by method and endpoint
    - In-progress requests by method
    """

    # Endpoints to exclude from metrics (to avoid noise)
    EXCLUDED_PATHS = {"/metrics", "/health", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method).dec()

        return response

    @staticmethod
    def _normalize_path(path: str) -> str:
        """
        Normalize URL path for metrics by replacing numeric segments.

        Examples:
            /api/v1/blogs/123/analytics -> /api/v1/blogs/{id}/analytics
        """
        return "/".join("{id}" if part.isdigit() else part for part in path.split("/"))


# =============================================================================
# Helper Functions
# =============================================================================


def record_view_tracked(unique: bool) -> None:
    BLOG_VIEWS_TRACKED_TOTAL.labels(unique=str(unique).lower()).inc()


def record_tracking_failure(reason: str) -> None:
    BLOG_VIEW_TRACKING_FAILURES_TOTAL.labels(reason=reason).inc()


def update_uptime(start_time: float) -> None:
    APP_UPTIME_SECONDS.set(time.time() - start_time)
