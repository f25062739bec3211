"""Location resolution, weather fetching and their orchestration."""

from .location_resolver import LocationResolver
from .orchestrator import ResolverOrchestrator
from .weather_fetcher import WeatherFetcher

__all__ = ["LocationResolver", "ResolverOrchestrator", "WeatherFetcher"]
