"""
Request Logging for the Blog Analytics API

Every request gets an ID (taken from ``X-Request-ID`` or generated) that is
echoed on the response and stamped on each log record emitted while the
request runs. Access log lines carry the blog id for blog-scoped routes
so tracking and report traffic can be filtered per blog.
"""

import json
import logging
import re
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Not written to the access log
QUIET_PATHS = frozenset({"/health", "/ready", "/metrics"})

_BLOG_PATH = re.compile(r"^/api/v1/blogs/(\d+)(?:/|$)")


class RequestIdFilter(logging.Filter):
    """Stamp the current request ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; known ``extra`` keys are lifted to the top level."""

    EXTRA_FIELDS = ("user_id", "blog_id", "method", "path", "status_code", "duration_ms", "client_ip", "error_code")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in self.EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_client_ip(request: Request) -> str | None:
    """Viewer IP: first X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip() or None
    return request.client.host if request.client else None


def blog_id_from_path(path: str) -> int | None:
    match = _BLOG_PATH.match(path)
    return int(match.group(1)) if match else None


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns request IDs and writes one access log line per request."""

    def __init__(self, app: ASGIApp, logger_name: str = "blog_api.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._access_log(request, 500, started, error=str(e))
            raise

        response.headers["X-Request-ID"] = request_id
        self._access_log(request, response.status_code, started)
        return response

    def _access_log(self, request: Request, status_code: int, started: float, error: str | None = None) -> None:
        path = request.url.path
        if path in QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_ip": get_client_ip(request) or "unknown",
        }
        blog_id = blog_id_from_path(path)
        if blog_id is not None:
            extra["blog_id"] = blog_id
        user = getattr(request.state, "user", None)
        if user is not None:
            extra["user_id"] = user.id

        message = f"{request.method} {path} - {status_code} ({duration_ms}ms)"
        if error:
            message = f"{message} - Error: {error}"
        self.logger.log(_level_for(status_code), message, extra=extra)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure root logging for the service.

    Args:
        log_level: Level for the ``blog_api`` loggers (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit JSON lines; plain text with the request ID otherwise
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"))
    handler.addFilter(RequestIdFilter())
    root_logger.addHandler(handler)

    logging.getLogger("blog_api").setLevel(level)
    for noisy in ("uvicorn", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
