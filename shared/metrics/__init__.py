"""Prometheus metrics module."""

from .prometheus_metrics import WeatherMetrics, get_metrics

__all__ = ["WeatherMetrics", "get_metrics"]
