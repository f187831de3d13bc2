"""
Request monitoring middleware.
Structured request logs, request IDs, Prometheus HTTP metrics and the
registration counters the services record.
"""

import logging
import time
import traceback
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from prometheus_client import Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from campus_events.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        (
            structlog.processors.JSONRenderer()
            if settings.monitoring.LOG_FORMAT == "json"
            else structlog.dev.ConsoleRenderer()
        ),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

struct_logger = structlog.get_logger()


class PrometheusMetrics:
    """Prometheus metrics collection"""

    def __init__(self) -> None:
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
        )

        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.errors_total = Counter(
            "errors_total", "Total application errors", ["error_type", "endpoint"]
        )

        # Business metrics
        self.events_created_total = Counter(
            "events_created_total", "Total events created"
        )

        self.registrations_total = Counter(
            "registrations_total",
            "Registration attempts by outcome",
            ["outcome"],
        )

    def record_request(
        self, method: str, endpoint: str, status_code: int, duration: float
    ) -> None:
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, endpoint: str) -> None:
        self.errors_total.labels(error_type=error_type, endpoint=endpoint).inc()


# Collectors register with the default registry once per process
metrics = PrometheusMetrics()


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return str(forwarded.split(",")[0].strip())
    return str(request.client.host) if request.client else "unknown"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Logs every request as structured events and records HTTP metrics."""

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self.metrics = metrics
        self.slow_request_seconds = settings.monitoring.SLOW_REQUEST_SECONDS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = _client_ip(request)

        struct_logger.info(
            "request_started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=client_ip,
        )

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            self.metrics.record_error(e.__class__.__name__, request.url.path)
            struct_logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration=duration,
                error=str(e),
                error_type=e.__class__.__name__,
                traceback=traceback.format_exc(),
            )
            raise

        duration = time.time() - start_time
        if settings.monitoring.ENABLE_PROMETHEUS:
            self.metrics.record_request(
                request.method, request.url.path, response.status_code, duration
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        log = struct_logger.warning if duration > self.slow_request_seconds else struct_logger.info
        log(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=duration,
        )
        return response


async def get_health_status() -> Dict[str, Any]:
    from campus_events.core.database_manager import db_manager

    db_health = await db_manager.health_check()
    healthy = db_health.get("status") == "healthy"
    return {
        "status": "healthy" if healthy else "degraded",
        "system": {
            "timestamp": time.time(),
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        "database": db_health,
        "checks": {"database": healthy},
    }


async def get_prometheus_metrics() -> str:
    return str(generate_latest().decode("utf-8"))
