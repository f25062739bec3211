"""OpenTelemetry configuration for distributed tracing.

Provides the OTLP exporting tracer provider and the trace context carrier
that both services use to extract, continue and inject W3C trace context
across every HTTP hop.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

from opentelemetry import context as otel_context
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, TracerProvider as TracerProviderAPI
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

TRACER_NAME = "cep-weather"


def configure_tracing(
    service_name: str,
    otlp_endpoint: str = "otel-collector:4317",
    sampling_rate: float = 1.0,
    export_timeout: float = 1.0,
) -> TracerProvider:
    """Configure OpenTelemetry tracing for the service.

    The provider is returned rather than installed globally; callers hand it
    to a TraceContextCarrier.

    Args:
        service_name: Name of the service (e.g., "cep-gateway")
        otlp_endpoint: OTLP/gRPC collector address
        sampling_rate: Sampling rate (0.0 to 1.0) for root spans
        export_timeout: Seconds to wait on the collector per export

    Returns:
        Configured TracerProvider
    """
    resource = Resource(
        attributes={
            "service.name": service_name,
            "service.namespace": "cep-weather",
            "service.version": "1.0.0",
        }
    )

    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(sampling_rate)),
    )

    otlp_exporter = OTLPSpanExporter(
        endpoint=otlp_endpoint,
        insecure=True,
        timeout=export_timeout,
    )

    provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    return provider


class TraceContextCarrier:
    """Explicit tracing handle passed to every component that opens spans.

    Wraps a tracer and a text map propagator. Inbound requests are continued
    with ``ingress_span``, outbound requests are wrapped with ``egress_span``
    which injects the child span into the outgoing headers.
    """

    def __init__(
        self,
        tracer_provider: TracerProviderAPI,
        propagator: Optional[TextMapPropagator] = None,
    ) -> None:
        self.tracer_provider = tracer_provider
        self.tracer = tracer_provider.get_tracer(TRACER_NAME)
        self.propagator = propagator or TraceContextTextMapPropagator()

    def extract(self, headers: Optional[Mapping[str, str]]) -> otel_context.Context:
        """Extract the inbound trace context.

        Args:
            headers: Inbound request headers; None or no trace headers yields
                an empty context so a new trace is started

        Returns:
            Context to parent the next span on
        """
        if not headers:
            return otel_context.Context()
        return self.propagator.extract(carrier=headers, context=otel_context.Context())

    def inject(self, headers: Dict[str, str]) -> Dict[str, str]:
        """Write the current trace context into outbound headers."""
        self.propagator.inject(carrier=headers)
        return headers

    @contextmanager
    def start_span(
        self,
        name: str,
        context: Optional[otel_context.Context] = None,
        kind: SpanKind = SpanKind.INTERNAL,
        **attributes: Any,
    ) -> Iterator[Span]:
        """Start a span as current, ending it on exit whatever the outcome.

        Args:
            name: Span name
            context: Parent context; defaults to the current one
            kind: Span kind
            **attributes: Span attributes

        Yields:
            Active span
        """
        with self.tracer.start_as_current_span(
            name,
            context=context,
            kind=kind,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            for key, value in attributes.items():
                span.set_attribute(key, value)

            try:
                yield span
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise

            span.set_status(Status(StatusCode.OK))

    @contextmanager
    def ingress_span(self, name: str, headers: Optional[Mapping[str, str]], **attributes: Any) -> Iterator[Span]:
        """Extract the caller's context and start the server span for this hop."""
        parent = self.extract(headers)
        with self.start_span(name, context=parent, kind=SpanKind.SERVER, **attributes) as span:
            yield span

    @contextmanager
    def egress_span(self, name: str, headers: Dict[str, str], **attributes: Any) -> Iterator[Span]:
        """Start a client span and inject it into the outbound headers."""
        with self.start_span(name, kind=SpanKind.CLIENT, **attributes) as span:
            self.inject(headers)
            yield span

    def shutdown(self) -> None:
        """Flush and stop the underlying provider when it supports it."""
        shutdown = getattr(self.tracer_provider, "shutdown", None)
        if shutdown is not None:
            shutdown()
