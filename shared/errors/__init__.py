"""Error taxonomy and FastAPI exception handlers."""

from .handlers import register_exception_handlers
from .taxonomy import (
    DownstreamUnavailable,
    InvalidPostalCode,
    MalformedInput,
    MethodNotAllowed,
    MissingCredential,
    ResolutionFailed,
    WeatherFailed,
    WeatherServiceError,
    error_from_payload,
)

__all__ = [
    "DownstreamUnavailable",
    "InvalidPostalCode",
    "MalformedInput",
    "MethodNotAllowed",
    "MissingCredential",
    "ResolutionFailed",
    "WeatherFailed",
    "WeatherServiceError",
    "error_from_payload",
    "register_exception_handlers",
]
