"""Prometheus metrics definitions and helpers.

Provides the metric definitions shared by the gateway and resolver services.
"""

import time
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    REGISTRY,
    generate_latest,
)


class WeatherMetrics:
    """HTTP and upstream-call metrics for one process."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        # Inbound requests
        self.http_requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "endpoint", "status"],
            registry=registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "endpoint"],
            registry=registry,
        )

        self.http_requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["service", "method", "endpoint"],
            registry=registry,
        )

        # Outbound calls (postal-code directory, weather provider, peer service)
        self.upstream_requests = Counter(
            "upstream_requests_total",
            "Total outbound requests to upstream APIs",
            ["service", "target", "outcome"],
            registry=registry,
        )

        self.upstream_request_duration = Histogram(
            "upstream_request_duration_seconds",
            "Outbound request duration in seconds",
            ["service", "target"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        # Orchestration failures by taxonomy kind
        self.orchestration_failures = Counter(
            "orchestration_failures_total",
            "Requests that terminated in a failed state",
            ["service", "error_type"],
            registry=registry,
        )

    @contextmanager
    def track_upstream(self, service: str, target: str) -> Iterator[None]:
        """Time an outbound call and count its outcome.

        Args:
            service: Calling service name
            target: Upstream name (e.g. "viacep")
        """
        start_time = time.perf_counter()
        outcome = "success"
        try:
            yield
        except Exception:
            outcome = "failure"
            raise
        finally:
            self.upstream_request_duration.labels(service=service, target=target).observe(
                time.perf_counter() - start_time
            )
            self.upstream_requests.labels(service=service, target=target, outcome=outcome).inc()

    def record_failure(self, service: str, error_type: str) -> None:
        self.orchestration_failures.labels(service=service, error_type=error_type).inc()

    def render(self) -> bytes:
        """Generate Prometheus exposition output for this registry."""
        return generate_latest(self.registry)


@lru_cache()
def get_metrics() -> WeatherMetrics:
    """Get the process-wide metrics bound to the default registry.

    Metrics can only be registered once per registry, so every app created
    in a process shares this instance.
    """
    return WeatherMetrics()
