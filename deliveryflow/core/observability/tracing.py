# core/observability/tracing.py
"""
OpenTelemetry tracing: provider setup for services plus span helpers used by
the engine. Without setup_tracing() the API's no-op provider is in effect and
spans cost nothing.
"""
import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

TRACER_NAME = "deliveryflow"


def setup_tracing(service_name: str = "deliveryflow", endpoint: Optional[str] = None) -> trace.Tracer:
    """
    Installs a global TracerProvider for the service.

    Args:
      service_name: The name of the service to be used in traces.
      endpoint: OTLP collector endpoint (e.g. "localhost:4317"). Without one,
                spans are recorded but not exported.
    """
    logger.info(f"Setting up tracing for service: {service_name}")

    resource = Resource.create({
        "service.name": service_name,
        "environment": os.getenv("APP_ENV", "development"),
    })
    tracer_provider = TracerProvider(resource=resource)
    if endpoint:
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        logger.info(f"Exporting spans to OTLP endpoint {endpoint}")

    trace.set_tracer_provider(tracer_provider)
    logger.info("OpenTelemetry tracing setup complete.")
    return trace.get_tracer(TRACER_NAME)


def get_tracer(component: str) -> trace.Tracer:
    return trace.get_tracer(f"{TRACER_NAME}.{component}")


@contextmanager
def start_trace_span(tracer: trace.Tracer, span_name: str, **attrs: Any) -> Iterator[trace.Span]:
    with tracer.start_as_current_span(span_name) as span:
        for key, value in attrs.items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def mark_span(span: trace.Span, succeeded: bool, description: Optional[str] = None) -> None:
    if succeeded:
        span.set_status(trace.Status(trace.StatusCode.OK))
    else:
        span.set_status(trace.Status(trace.StatusCode.ERROR, description))
