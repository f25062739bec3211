"""
Current weather lookup against WeatherAPI.

Only the Celsius reading is taken from the provider; the other scales are
derived from it by the response model.
"""

import asyncio
import json
from typing import Any, Dict, Tuple

import aiohttp
import structlog

from shared.errors import WeatherFailed
from shared.metrics import WeatherMetrics
from shared.models import WeatherReading
from shared.tracing import TraceContextCarrier

logger = structlog.get_logger(__name__)


class WeatherFetcher:
    """Fetches the current temperature for a city using the caller's key."""

    TARGET = "weatherapi"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        carrier: TraceContextCarrier,
        metrics: WeatherMetrics,
        base_url: str = "http://api.weatherapi.com/v1/current.json",
        timeout: float = 10.0,
        service_name: str = "weather-resolver",
    ) -> None:
        self._session = session
        self._carrier = carrier
        self._metrics = metrics
        self._base_url = base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._service_name = service_name

    async def fetch(self, location: str, api_key: str) -> WeatherReading:
        """
        Fetch the current weather for a location.

        Args:
            location: City name used as the provider query
            api_key: Caller credential, forwarded unchanged

        Returns:
            WeatherReading with the Celsius temperature

        Raises:
            WeatherFailed: If the provider rejects the request, answers without
                a temperature, or cannot be reached
        """
        headers: Dict[str, str] = {}
        params = {"q": location, "key": api_key}

        with self._carrier.egress_span(
            "outgoing request to weatherapi",
            headers,
            **{"http.method": "GET", "http.url": self._base_url, "weather.location": location},
        ):
            with self._metrics.track_upstream(self._service_name, self.TARGET):
                status, payload = await self._get_json(params, headers)

            reading = self._parse_reading(status, payload)

        logger.info("weather_fetched", location=location, temp_c=reading.temp_c)
        return reading

    async def _get_json(self, params: Dict[str, str], headers: Dict[str, str]) -> Tuple[int, Any]:
        try:
            async with self._session.get(
                self._base_url, params=params, headers=headers, timeout=self._timeout
            ) as response:
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("weather_fetch_failed", error=repr(exc))
            raise WeatherFailed(f"weather lookup failed ({type(exc).__name__})") from exc

        try:
            return response.status, json.loads(body)
        except ValueError as exc:
            logger.warning("weather_response_invalid", status=response.status)
            raise WeatherFailed() from exc

    @staticmethod
    def _parse_reading(status: int, payload: Any) -> WeatherReading:
        if not isinstance(payload, dict):
            raise WeatherFailed()

        # Provider errors look like {"error": {"code": 2006, "message": "API key is invalid."}}
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message") or "unknown provider error"
            logger.warning("weather_provider_error", status=status, code=error.get("code"), message=message)
            raise WeatherFailed(f"error getting weather: {message}")

        if status >= 400:
            logger.warning("weather_provider_error", status=status)
            raise WeatherFailed(f"error getting weather, provider responded with status {status}")

        current = payload.get("current")
        temp_c = current.get("temp_c") if isinstance(current, dict) else None

        # Absent temperature is the credential-rejected case; a real 0.0 is a reading.
        if isinstance(temp_c, bool) or not isinstance(temp_c, (int, float)):
            raise WeatherFailed()

        return WeatherReading(temp_c=float(temp_c))
