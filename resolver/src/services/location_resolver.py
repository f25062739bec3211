"""
Postal code to city lookup against the ViaCEP directory.

One GET per resolution, no retries. The locality field of the directory
response is the city name; anything else counts as a failed resolution.
"""

import asyncio
import json
from typing import Any, Dict

import aiohttp
import structlog

from shared.errors import ResolutionFailed
from shared.metrics import WeatherMetrics
from shared.tracing import TraceContextCarrier

logger = structlog.get_logger(__name__)


class LocationResolver:
    """Resolves a validated postal code to a city name."""

    TARGET = "viacep"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        carrier: TraceContextCarrier,
        metrics: WeatherMetrics,
        url_template: str = "http://viacep.com.br/ws/{cep}/json/",
        timeout: float = 10.0,
        service_name: str = "weather-resolver",
    ) -> None:
        self._session = session
        self._carrier = carrier
        self._metrics = metrics
        self._url_template = url_template
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._service_name = service_name

    async def resolve(self, postal_code: str) -> str:
        """
        Look up the city for a postal code.

        Args:
            postal_code: Eight-digit postal code

        Returns:
            City name

        Raises:
            ResolutionFailed: If the directory has no locality for the code or
                could not be reached
        """
        url = self._url_template.format(cep=postal_code)
        headers: Dict[str, str] = {}

        with self._carrier.egress_span(
            "outgoing request to viacep",
            headers,
            **{"http.method": "GET", "http.url": url, "postal_code": postal_code},
        ):
            with self._metrics.track_upstream(self._service_name, self.TARGET):
                payload = await self._get_json(url, headers)

            city = payload.get("localidade") if isinstance(payload, dict) else None
            if not isinstance(city, str) or not city:
                logger.info("location_not_found", postal_code=postal_code)
                raise ResolutionFailed()

        logger.info("location_resolved", postal_code=postal_code, city=city)
        return city

    async def _get_json(self, url: str, headers: Dict[str, str]) -> Any:
        try:
            async with self._session.get(url, headers=headers, timeout=self._timeout) as response:
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("location_lookup_failed", url=url, error=repr(exc))
            raise ResolutionFailed(f"location lookup failed ({type(exc).__name__})") from exc

        try:
            return json.loads(body)
        except ValueError as exc:
            logger.warning("location_response_invalid", url=url, status=response.status)
            raise ResolutionFailed() from exc
