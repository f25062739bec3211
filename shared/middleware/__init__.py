"""Starlette middleware shared by the gateway and resolver services."""

from .request_logging import CORRELATION_HEADER, RequestLoggingMiddleware

__all__ = ["CORRELATION_HEADER", "RequestLoggingMiddleware"]
