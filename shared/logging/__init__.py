"""Structured logging for both services."""

from .structured_logger import bind_context, configure_logging, unbind_context

__all__ = ["bind_context", "configure_logging", "unbind_context"]
