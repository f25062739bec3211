"""
Gateway orchestration: validate the postal code, then forward it.

Per request the orchestrator moves through
``received → validated → forwarding → completed`` or ends in ``failed``.
"""

from typing import Callable, Optional, Protocol

import structlog
from opentelemetry import trace
from pydantic import ValidationError

from gateway.src.services.validator import normalize_postal_code
from shared.errors import MalformedInput, MethodNotAllowed, MissingCredential, WeatherServiceError
from shared.metrics import WeatherMetrics
from shared.models import AggregatedResponse, GatewayState, PostalCodeRequest

logger = structlog.get_logger(__name__)


class TemperatureSource(Protocol):
    async def get_temperature(self, postal_code: str, api_key: str) -> AggregatedResponse: ...


class GatewayOrchestrator:
    """Validates inbound postal codes and forwards them to the resolver."""

    ALLOWED_METHOD = "POST"

    def __init__(
        self,
        resolver_client: TemperatureSource,
        metrics: WeatherMetrics,
        normalizer: Callable[[str], str] = normalize_postal_code,
        service_name: str = "cep-gateway",
    ) -> None:
        self._resolver_client = resolver_client
        self._metrics = metrics
        self._normalize = normalizer
        self._service_name = service_name

    async def handle(self, method: str, body: bytes, api_key: Optional[str]) -> AggregatedResponse:
        """
        Run one request through the gateway state machine.

        Args:
            method: HTTP method of the inbound request
            body: Raw request body, expected to be ``{"cep": "<string>"}``
            api_key: Credential from the ``api_key`` header

        Returns:
            The resolver's aggregated response

        Raises:
            WeatherServiceError: The taxonomy kind of the failing step
        """
        state = GatewayState.RECEIVED
        log = logger
        self._enter(state, log)

        try:
            if method.upper() != self.ALLOWED_METHOD:
                raise MethodNotAllowed()

            try:
                request = PostalCodeRequest.model_validate_json(body)
            except ValidationError as exc:
                raise MalformedInput('request body must be {"cep": "<string>"}') from exc

            if not api_key:
                raise MissingCredential()

            postal_code = self._normalize(request.cep)
            log = logger.bind(postal_code=postal_code)
            state = GatewayState.VALIDATED
            self._enter(state, log)

            state = GatewayState.FORWARDING
            self._enter(state, log)
            response = await self._resolver_client.get_temperature(postal_code, api_key)

        except WeatherServiceError as exc:
            self._metrics.record_failure(self._service_name, exc.code)
            self._enter(GatewayState.FAILED, log, failed_in=state.value, error=exc.code, detail=exc.detail)
            raise

        self._enter(GatewayState.COMPLETED, log, city=response.city)
        return response

    @staticmethod
    def _enter(state: GatewayState, log: structlog.stdlib.BoundLogger, **fields: object) -> None:
        trace.get_current_span().set_attribute("request.state", state.value)
        log.info("gateway_state_changed", state=state.value, **fields)
