"""
OpenTelemetry Distributed Tracing

Configures OpenTelemetry for tracing the marketplace services. Spans are
exported over OTLP/HTTP when an endpoint is configured. Without set-up the
tracer returned by get_tracer() is a no-op proxy, so services can always
open spans.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

_initialized = False


def setup_tracing(
    service_name: str = "ridecycle-marketplace",
    otlp_endpoint: Optional[str] = None,
    enable: bool = True,
) -> None:
    """
    Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP/HTTP collector endpoint, e.g. http://otel-collector:4318/v1/traces
        enable: Enable/disable tracing
    """
    global _initialized

    if _initialized:
        logger.warning("Tracing already initialized. Skipping.")
        return

    if not enable:
        logger.info("Tracing disabled via configuration")
        return

    try:
        resource = Resource(attributes={SERVICE_NAME: service_name})
        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)

        if otlp_endpoint:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

            tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
            logger.info(f"OTLP tracing configured: {otlp_endpoint}")

        # Auto-instrument Django (traces all HTTP requests)
        DjangoInstrumentor().instrument()
        logger.info("Django auto-instrumentation enabled")

        _initialized = True
        logger.info(f"OpenTelemetry tracing initialized for service: {service_name}")

    except Exception as e:
        logger.error(f"Failed to initialize tracing: {e}", exc_info=True)


def get_tracer(name: str = "marketplace") -> trace.Tracer:
    """
    Get tracer instance for creating custom spans.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("offer_accept_transaction"):
            ...
    """
    return trace.get_tracer(name)
