"""Distributed tracing module using OpenTelemetry."""

from .otel_config import TraceContextCarrier, configure_tracing

__all__ = ["TraceContextCarrier", "configure_tracing"]
