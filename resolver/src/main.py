"""
FastAPI application entry point for the weather resolver service.

This module provides:
- ``GET /?zip=<cep>``: postal code to current temperature
- Health and Prometheus metrics endpoints
- OpenTelemetry trace continuation from the calling service
- aiohttp client session lifecycle and graceful shutdown
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiohttp
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import CONTENT_TYPE_LATEST

from resolver.src.config import ResolverSettings, get_settings
from resolver.src.services import LocationResolver, ResolverOrchestrator, WeatherFetcher
from shared.errors import register_exception_handlers
from shared.logging import configure_logging
from shared.metrics import WeatherMetrics, get_metrics
from shared.middleware import RequestLoggingMiddleware
from shared.models import AggregatedResponse, ErrorResponse, HealthStatus, ServiceInfo
from shared.runtime import run_service
from shared.tracing import TraceContextCarrier, configure_tracing

logger = structlog.get_logger(__name__)

# Every method is routed so that the span exists before the method check.
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Optional[ResolverSettings] = None,
    carrier: Optional[TraceContextCarrier] = None,
    metrics: Optional[WeatherMetrics] = None,
    orchestrator: Optional[ResolverOrchestrator] = None,
) -> FastAPI:
    """
    Build the resolver application.

    Collaborators that are not supplied are created by the lifespan: the
    tracing handle from settings, and the orchestrator with its own aiohttp
    session.

    Args:
        settings: Service settings (defaults to environment)
        carrier: Tracing handle
        metrics: Prometheus metrics
        orchestrator: Prebuilt orchestrator

    Returns:
        FastAPI application
    """
    settings = settings or get_settings()
    metrics = metrics or get_metrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "application_starting",
            service=settings.service_name,
            version=settings.app_version,
            environment=settings.environment,
        )

        session: Optional[aiohttp.ClientSession] = None
        owns_carrier = app.state.carrier is None

        try:
            if owns_carrier:
                if settings.tracing_enabled:
                    logger.info("initializing_tracing", endpoint=settings.otel_exporter_otlp_endpoint)
                    provider = configure_tracing(
                        settings.service_name,
                        otlp_endpoint=settings.otel_exporter_otlp_endpoint,
                        sampling_rate=settings.tracing_sample_rate,
                        export_timeout=settings.tracing_export_timeout,
                    )
                else:
                    provider = TracerProvider()
                app.state.carrier = TraceContextCarrier(provider)

            if app.state.orchestrator is None:
                session = aiohttp.ClientSession()
                app.state.orchestrator = ResolverOrchestrator(
                    LocationResolver(
                        session,
                        app.state.carrier,
                        metrics,
                        url_template=settings.location_api_url,
                        timeout=settings.request_timeout,
                        service_name=settings.service_name,
                    ),
                    WeatherFetcher(
                        session,
                        app.state.carrier,
                        metrics,
                        base_url=settings.weather_api_url,
                        timeout=settings.request_timeout,
                        service_name=settings.service_name,
                    ),
                    metrics,
                    service_name=settings.service_name,
                )

            logger.info("application_started", service=settings.service_name)
            yield

        except Exception as e:
            logger.error("application_startup_failed", error=str(e), exc_info=True)
            raise

        finally:
            logger.info("application_shutting_down")
            if session is not None:
                await session.close()
                app.state.orchestrator = None
            if owns_carrier and app.state.carrier is not None:
                app.state.carrier.shutdown()
                app.state.carrier = None
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.service_name,
        version=settings.app_version,
        description="Resolves a postal code to its city and current temperature.",
        lifespan=lifespan,
    )
    app.state.carrier = carrier
    app.state.orchestrator = orchestrator

    app.add_middleware(RequestLoggingMiddleware, service_name=settings.service_name, metrics=metrics)
    register_exception_handlers(app)

    @app.api_route(
        "/",
        methods=ROUTED_METHODS,
        response_model=AggregatedResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Missing credential, resolution or weather failure"},
            405: {"model": ErrorResponse, "description": "Method not GET"},
        },
        tags=["Weather"],
    )
    async def get_temperature(request: Request) -> AggregatedResponse:
        """Resolve ``zip`` to a city and return its current temperature."""
        with request.app.state.carrier.ingress_span(
            settings.service_name,
            request.headers,
            **{"http.method": request.method, "http.route": "/"},
        ):
            return await request.app.state.orchestrator.handle(
                request.method,
                request.query_params.get("zip"),
                request.headers.get("api_key"),
            )

    @app.get("/health", tags=["Health"], response_model=ServiceInfo)
    async def health_check() -> ServiceInfo:
        """Basic liveness check without touching upstream APIs."""
        return ServiceInfo(
            status=HealthStatus.HEALTHY,
            service=settings.service_name,
            version=settings.app_version,
            environment=settings.environment,
        )

    @app.get("/metrics", tags=["Monitoring"], response_class=PlainTextResponse)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


def main() -> None:
    """Run the resolver until interrupted."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.service_name,
        environment=settings.environment,
    )
    host, port = settings.listen_address
    asyncio.run(
        run_service(
            app,
            host,
            port,
            grace_period=settings.shutdown_grace_period,
            log_level=settings.log_level,
        )
    )


if __name__ == "__main__":
    main()
