"""Shared Pydantic models for the postal code weather services."""

from .common import HealthStatus, ServiceInfo
from .weather import (
    AggregatedResponse,
    ErrorResponse,
    GatewayState,
    PostalCodeRequest,
    ResolverState,
    WeatherReading,
)

__all__ = [
    "AggregatedResponse",
    "ErrorResponse",
    "GatewayState",
    "HealthStatus",
    "PostalCodeRequest",
    "ResolverState",
    "ServiceInfo",
    "WeatherReading",
]
