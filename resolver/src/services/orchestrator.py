"""
Resolver orchestration: postal code → city → current weather.

Per request the orchestrator moves through
``received → location_resolving → weather_fetching → aggregated`` or ends
in ``failed``. The location lookup always completes before the weather
lookup starts, and a missing credential fails before either is attempted.
"""

from typing import Optional, Protocol

import structlog
from opentelemetry import trace

from shared.errors import MethodNotAllowed, MissingCredential, ResolutionFailed, WeatherServiceError
from shared.metrics import WeatherMetrics
from shared.models import AggregatedResponse, ResolverState, WeatherReading

logger = structlog.get_logger(__name__)


class Resolver(Protocol):
    async def resolve(self, postal_code: str) -> str: ...


class Fetcher(Protocol):
    async def fetch(self, location: str, api_key: str) -> WeatherReading: ...


class ResolverOrchestrator:
    """Composes location resolution and weather fetching into one response."""

    ALLOWED_METHOD = "GET"

    def __init__(
        self,
        location_resolver: Resolver,
        weather_fetcher: Fetcher,
        metrics: WeatherMetrics,
        service_name: str = "weather-resolver",
    ) -> None:
        self._location_resolver = location_resolver
        self._weather_fetcher = weather_fetcher
        self._metrics = metrics
        self._service_name = service_name

    async def handle(self, method: str, postal_code: Optional[str], api_key: Optional[str]) -> AggregatedResponse:
        """
        Run one request through the resolver state machine.

        Args:
            method: HTTP method of the inbound request
            postal_code: Postal code from the ``zip`` query parameter
            api_key: Credential from the ``api_key`` header

        Returns:
            AggregatedResponse for the resolved city

        Raises:
            WeatherServiceError: The taxonomy kind of the failing step
        """
        log = logger.bind(postal_code=postal_code)
        state = ResolverState.RECEIVED
        self._enter(state, log)

        try:
            if method.upper() != self.ALLOWED_METHOD:
                raise MethodNotAllowed()
            if not api_key:
                raise MissingCredential()
            if not postal_code:
                raise ResolutionFailed()

            state = ResolverState.LOCATION_RESOLVING
            self._enter(state, log)
            city = await self._location_resolver.resolve(postal_code)

            state = ResolverState.WEATHER_FETCHING
            self._enter(state, log.bind(city=city))
            reading = await self._weather_fetcher.fetch(city, api_key)

        except WeatherServiceError as exc:
            self._metrics.record_failure(self._service_name, exc.code)
            self._enter(ResolverState.FAILED, log, failed_in=state.value, error=exc.code, detail=exc.detail)
            raise

        response = AggregatedResponse.from_reading(city, reading)
        self._enter(ResolverState.AGGREGATED, log, city=city, temp_c=response.temp_C)
        return response

    @staticmethod
    def _enter(state: ResolverState, log: structlog.stdlib.BoundLogger, **fields: object) -> None:
        trace.get_current_span().set_attribute("request.state", state.value)
        log.info("resolver_state_changed", state=state.value, **fields)
