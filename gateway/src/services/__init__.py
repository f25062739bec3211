"""Postal code validation, resolver forwarding and their orchestration."""

from .orchestrator import GatewayOrchestrator
from .resolver_client import ResolverClient
from .validator import extract_digits, normalize_postal_code

__all__ = ["GatewayOrchestrator", "ResolverClient", "extract_digits", "normalize_postal_code"]
