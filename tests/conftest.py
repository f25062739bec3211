"""
Shared fixtures for the gateway and resolver test suites.

Provides:
- In-memory OpenTelemetry tracing (TraceContextCarrier + span exporter)
- Isolated Prometheus metrics registries
- A fake ViaCEP / WeatherAPI upstream served by aiohttp
- A helper that hosts a FastAPI app on a real localhost port
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from fastapi import FastAPI
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from shared.metrics import WeatherMetrics
from shared.runtime import build_server, serve
from shared.tracing import TraceContextCarrier

VALID_API_KEY = "valid-key"


# ============================================================================
# Tracing and metrics
# ============================================================================


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def carrier(tracer_provider) -> TraceContextCarrier:
    return TraceContextCarrier(tracer_provider)


@pytest.fixture
def metrics() -> WeatherMetrics:
    """Metrics bound to a private registry so tests never collide."""
    return WeatherMetrics(registry=CollectorRegistry())


# ============================================================================
# Fake upstream APIs
# ============================================================================


class FakeUpstream:
    """aiohttp application standing in for ViaCEP and WeatherAPI."""

    def __init__(self) -> None:
        self.cities: Dict[str, str] = {"01001000": "São Paulo"}
        self.temperatures: Dict[str, Optional[float]] = {"São Paulo": 25.0}
        self.valid_key = VALID_API_KEY
        self.requests: List[Dict[str, Any]] = []
        self.base_url = ""

    @property
    def location_url(self) -> str:
        return f"{self.base_url}/ws/{{cep}}/json/"

    @property
    def broken_location_url(self) -> str:
        return f"{self.base_url}/broken/{{cep}}/json/"

    @property
    def weather_url(self) -> str:
        return f"{self.base_url}/v1/current.json"

    def requests_to(self, prefix: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["path"].startswith(prefix)]

    def _record(self, request: web.Request) -> None:
        self.requests.append(
            {
                "path": request.path,
                "query": dict(request.query),
                "headers": {key.lower(): value for key, value in request.headers.items()},
            }
        )

    async def viacep(self, request: web.Request) -> web.Response:
        self._record(request)
        cep = request.match_info["cep"]
        if cep not in self.cities:
            return web.json_response({"erro": True})
        return web.json_response({"cep": cep, "localidade": self.cities[cep], "uf": "SP"})

    async def broken(self, request: web.Request) -> web.Response:
        self._record(request)
        return web.Response(text="<html>Bad Request</html>", status=400, content_type="text/html")

    async def weather(self, request: web.Request) -> web.Response:
        self._record(request)
        if request.query.get("key") != self.valid_key:
            return web.json_response(
                {"error": {"code": 2006, "message": "API key is invalid."}}, status=401
            )

        city = request.query.get("q", "")
        if city not in self.temperatures:
            return web.json_response(
                {"error": {"code": 1006, "message": "No matching location found."}}, status=400
            )

        temp_c = self.temperatures[city]
        current: Dict[str, Any] = {} if temp_c is None else {"temp_c": temp_c, "temp_f": temp_c * 9 / 5 + 32}
        return web.json_response({"location": {"name": city}, "current": current})

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws/{cep}/json/", self.viacep)
        app.router.add_get("/broken/{cep}/json/", self.broken)
        app.router.add_get("/v1/current.json", self.weather)
        return app


@pytest_asyncio.fixture
async def fake_upstream() -> AsyncIterator[FakeUpstream]:
    upstream = FakeUpstream()
    server = TestServer(upstream.build_app())
    await server.start_server()
    upstream.base_url = f"http://{server.host}:{server.port}"
    yield upstream
    await server.close()


@pytest_asyncio.fixture
async def client_session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


# ============================================================================
# Hosting FastAPI apps on localhost
# ============================================================================


@asynccontextmanager
async def serving(app: FastAPI, grace_period: float = 1.0) -> AsyncIterator[str]:
    """Host ``app`` with uvicorn on a free port and yield its base URL."""
    server = build_server(app, "127.0.0.1", 0, grace_period=grace_period, log_level="warning")
    shutdown_event = asyncio.Event()
    task = asyncio.create_task(serve(server, shutdown_event, grace_period=grace_period))

    while not server.started:
        if task.done():
            task.result()
            raise RuntimeError("server exited during startup")
        await asyncio.sleep(0.01)

    port = server.servers[0].sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        shutdown_event.set()
        await task


@pytest.fixture
def serve_app():
    """Async context manager factory: ``async with serve_app(app) as base_url``."""
    return serving
