"""Request logging and metrics middleware shared by both services."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from shared.logging import bind_context, unbind_context
from shared.metrics import WeatherMetrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging, metrics and correlation IDs."""

    def __init__(self, app: ASGIApp, service_name: str, metrics: WeatherMetrics) -> None:
        super().__init__(app)
        self.service_name = service_name
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        method = request.method
        path = request.url.path
        labels = {"service": self.service_name, "method": method, "endpoint": path}

        self.metrics.http_requests_in_progress.labels(**labels).inc()
        bind_context(correlation_id=correlation_id)
        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_ip=request.client.host if request.client else "unknown",
        )

        try:
            response = await call_next(request)

            duration = time.perf_counter() - start_time
            self.metrics.http_requests.labels(status=response.status_code, **labels).inc()
            self.metrics.http_request_duration.labels(**labels).observe(duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration=f"{duration:.3f}s",
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{duration:.3f}s",
                exc_info=True,
            )
            raise

        finally:
            self.metrics.http_requests_in_progress.labels(**labels).dec()
            unbind_context("correlation_id")
