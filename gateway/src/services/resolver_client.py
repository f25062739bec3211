"""
HTTP client for the weather resolver service.

Forwards a validated postal code with the caller's credential and the
current trace context, and maps the resolver's answer back into the error
taxonomy. A transport failure always ends the call before any response
decoding is attempted.
"""

import asyncio
import json
from typing import Dict, Tuple

import aiohttp
import structlog
from pydantic import ValidationError

from shared.errors import DownstreamUnavailable, WeatherServiceError, error_from_payload
from shared.metrics import WeatherMetrics
from shared.models import AggregatedResponse
from shared.tracing import TraceContextCarrier

logger = structlog.get_logger(__name__)


class ResolverClient:
    """Calls ``GET <resolver_url>?zip=<cep>`` on the resolver service."""

    TARGET = "weather-resolver"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        carrier: TraceContextCarrier,
        metrics: WeatherMetrics,
        base_url: str = "http://service-b:8081",
        timeout: float = 10.0,
        service_name: str = "cep-gateway",
    ) -> None:
        self._session = session
        self._carrier = carrier
        self._metrics = metrics
        self._base_url = base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._service_name = service_name

    async def get_temperature(self, postal_code: str, api_key: str) -> AggregatedResponse:
        """
        Forward a postal code to the resolver.

        Args:
            postal_code: Validated eight-digit postal code
            api_key: Caller credential, sent in the ``api_key`` header

        Returns:
            The resolver's aggregated response, unchanged

        Raises:
            DownstreamUnavailable: If the resolver cannot be reached or answers
                with something that is not a known response
            WeatherServiceError: The resolver's own failure kind, rebuilt from
                its error body
        """
        headers: Dict[str, str] = {"api_key": api_key}

        with self._carrier.egress_span(
            "outgoing request to resolver",
            headers,
            **{"http.method": "GET", "http.url": self._base_url, "postal_code": postal_code},
        ):
            with self._metrics.track_upstream(self._service_name, self.TARGET):
                status, body = await self._get(postal_code, headers)

            if status != 200:
                raise self._failure_from_response(status, body)

            try:
                return AggregatedResponse.model_validate_json(body)
            except ValidationError as exc:
                logger.warning("resolver_response_invalid", status=status)
                raise DownstreamUnavailable("invalid response from weather resolver") from exc

    async def _get(self, postal_code: str, headers: Dict[str, str]) -> Tuple[int, bytes]:
        try:
            async with self._session.get(
                self._base_url,
                params={"zip": postal_code},
                headers=headers,
                timeout=self._timeout,
            ) as response:
                return response.status, await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("resolver_unreachable", url=self._base_url, error=repr(exc))
            raise DownstreamUnavailable(f"weather resolver unavailable ({type(exc).__name__})") from exc

    @staticmethod
    def _failure_from_response(status: int, body: bytes) -> WeatherServiceError:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        # Downstream failures are client errors at this hop whatever their kind.
        error = error_from_payload(payload)
        if error is None or error.status_code != 400:
            error = DownstreamUnavailable(f"weather resolver responded with status {status}")

        logger.info("resolver_rejected_request", status=status, error=error.code, detail=error.detail)
        return error
