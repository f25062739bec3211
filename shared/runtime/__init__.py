"""Service hosting and graceful shutdown."""

from .server import ManagedServer, build_server, parse_listen_address, run_service, serve

__all__ = ["ManagedServer", "build_server", "parse_listen_address", "run_service", "serve"]
