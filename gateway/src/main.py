"""
FastAPI application entry point for the CEP gateway service.

This module provides:
- ``POST /`` with ``{"cep": "..."}``: validate and forward to the resolver
- Health and Prometheus metrics endpoints
- OpenTelemetry trace start/continuation and propagation to the resolver
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

from gateway.src.config import GatewaySettings, get_settings
from gateway.src.services import GatewayOrchestrator, ResolverClient
from shared.errors import register_exception_handlers
from shared.logging import configure_logging
from shared.metrics import WeatherMetrics, get_metrics
from shared.middleware import RequestLoggingMiddleware
from shared.models import AggregatedResponse, ErrorResponse, HealthStatus, ServiceInfo
from shared.runtime import run_service
from shared.tracing import TraceContextCarrier, configure_tracing

logger = structlog.get_logger(__name__)

ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Optional[GatewaySettings] = None,
    carrier: Optional[TraceContextCarrier] = None,
    metrics: Optional[WeatherMetrics] = None,
    orchestrator: Optional[GatewayOrchestrator] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Service settings (defaults to environment)
        carrier: Tracing handle; built from settings when omitted
        metrics: Prometheus metrics
        orchestrator: Prebuilt orchestrator; built with its own aiohttp
            session when omitted

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
            resolver_url=settings.resolver_url,
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
                resolver_client = ResolverClient(
                    session,
                    app.state.carrier,
                    metrics,
                    base_url=settings.resolver_url,
                    timeout=settings.request_timeout,
                    service_name=settings.service_name,
                )
                app.state.orchestrator = GatewayOrchestrator(
                    resolver_client,
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
        description="Validates postal codes and forwards them to the weather resolver.",
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
            400: {"model": ErrorResponse, "description": "Malformed body, missing credential or downstream failure"},
            405: {"model": ErrorResponse, "description": "Method not POST"},
            422: {"model": ErrorResponse, "description": "Invalid zipcode"},
        },
        tags=["Weather"],
    )
    async def get_temperature_from_zip(request: Request) -> AggregatedResponse:
        """Validate ``cep`` and return the resolver's temperature for it."""
        with request.app.state.carrier.ingress_span(
            settings.service_name,
            request.headers,
            **{"http.method": request.method, "http.route": "/"},
        ):
            body = await request.body()
            return await request.app.state.orchestrator.handle(
                request.method,
                body,
                request.headers.get("api_key"),
            )

    @app.get("/health", tags=["Health"], response_model=ServiceInfo)
    async def health_check() -> ServiceInfo:
        """Basic liveness check without calling the resolver."""
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
    """Run the gateway until interrupted."""
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
