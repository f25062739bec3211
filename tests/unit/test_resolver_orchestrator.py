"""
Unit tests for the resolver orchestrator.

Tests cover:
- Location resolution strictly before weather fetching
- Pre-flight rejections (method, credential, empty postal code)
- Failure propagation and metrics
- Temperature conversions in the aggregated response
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from resolver.src.services import ResolverOrchestrator
from shared.errors import MethodNotAllowed, MissingCredential, ResolutionFailed, WeatherFailed
from shared.models import WeatherReading


@pytest.fixture
def location_resolver():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value="São Paulo")
    return resolver


@pytest.fixture
def weather_fetcher():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=WeatherReading(temp_c=25.0))
    return fetcher


@pytest.fixture
def orchestrator(location_resolver, weather_fetcher, metrics):
    return ResolverOrchestrator(location_resolver, weather_fetcher, metrics)


def failures(metrics, error_type):
    return metrics.registry.get_sample_value(
        "orchestration_failures_total",
        {"service": "weather-resolver", "error_type": error_type},
    )


class TestResolverOrchestrator:
    """Test the resolver request lifecycle"""

    @pytest.mark.asyncio
    async def test_aggregates_city_and_temperature(self, orchestrator, location_resolver, weather_fetcher):
        """Test the happy path and the order of upstream calls"""
        calls = []
        location_resolver.resolve.side_effect = lambda cep: calls.append("resolve") or "São Paulo"
        weather_fetcher.fetch.side_effect = lambda city, key: calls.append("fetch") or WeatherReading(temp_c=25.0)

        response = await orchestrator.handle("GET", "01001000", "key")

        assert calls == ["resolve", "fetch"]
        location_resolver.resolve.assert_awaited_once_with("01001000")
        weather_fetcher.fetch.assert_awaited_once_with("São Paulo", "key")
        assert response.model_dump() == {"city": "São Paulo", "temp_C": 25.0, "temp_F": 77.0, "temp_K": 298.0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    async def test_rejects_other_methods(self, orchestrator, location_resolver, weather_fetcher, method):
        """Test that only GET is served"""
        with pytest.raises(MethodNotAllowed):
            await orchestrator.handle(method, "01001000", "key")

        location_resolver.resolve.assert_not_awaited()
        weather_fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("api_key", [None, ""])
    async def test_missing_credential_makes_no_calls(
        self, orchestrator, location_resolver, weather_fetcher, metrics, api_key
    ):
        """Test that a missing credential fails before any upstream call"""
        with pytest.raises(MissingCredential):
            await orchestrator.handle("GET", "01001000", api_key)

        location_resolver.resolve.assert_not_awaited()
        weather_fetcher.fetch.assert_not_awaited()
        assert failures(metrics, "missing_credential") == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("postal_code", [None, ""])
    async def test_empty_postal_code(self, orchestrator, location_resolver, postal_code):
        """Test that an absent zip cannot be resolved"""
        with pytest.raises(ResolutionFailed):
            await orchestrator.handle("GET", postal_code, "key")

        location_resolver.resolve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resolution_failure_skips_weather(self, orchestrator, location_resolver, weather_fetcher, metrics):
        """Test that a failed resolution never reaches the weather provider"""
        location_resolver.resolve.side_effect = ResolutionFailed()

        with pytest.raises(ResolutionFailed):
            await orchestrator.handle("GET", "99999999", "key")

        weather_fetcher.fetch.assert_not_awaited()
        assert failures(metrics, "resolution_failed") == 1.0

    @pytest.mark.asyncio
    async def test_weather_failure_propagates(self, orchestrator, weather_fetcher, metrics):
        """Test that a weather failure surfaces unchanged"""
        weather_fetcher.fetch.side_effect = WeatherFailed("error getting weather: API key is invalid.")

        with pytest.raises(WeatherFailed) as exc_info:
            await orchestrator.handle("GET", "01001000", "bad")

        assert exc_info.value.detail == "error getting weather: API key is invalid."
        assert failures(metrics, "weather_failed") == 1.0

    @pytest.mark.asyncio
    async def test_state_recorded_on_current_span(self, orchestrator, carrier, span_exporter):
        """Test that the final state is recorded on the request span"""
        with carrier.start_span("weather-resolver"):
            await orchestrator.handle("GET", "01001000", "key")

        (span,) = span_exporter.get_finished_spans()
        assert span.attributes["request.state"] == "aggregated"


class TestConversions:
    """Test temperature scale conversions"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "celsius,fahrenheit,kelvin",
        [
            (25.0, 77.0, 298.0),
            (0.0, 32.0, 273.0),
            (-40.0, -40.0, 233.0),
            (100.0, 212.0, 373.0),
            (28.5, 83.3, 301.5),
        ],
    )
    async def test_scales(self, orchestrator, weather_fetcher, celsius, fahrenheit, kelvin):
        """Test Fahrenheit and Kelvin are derived from Celsius"""
        weather_fetcher.fetch.return_value = WeatherReading(temp_c=celsius)

        response = await orchestrator.handle("GET", "01001000", "key")

        assert response.temp_C == celsius
        assert response.temp_F == pytest.approx(fahrenheit)
        assert response.temp_K == pytest.approx(kelvin)
