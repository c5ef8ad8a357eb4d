"""OpenTelemetry configuration for tracing a plugin run."""

import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from k8s_job_proxy import __version__
from k8s_job_proxy.core.config import Settings

logger = logging.getLogger(__name__)


def setup_telemetry(settings: Settings) -> TracerProvider | None:
    """Configure OpenTelemetry tracing for the plugin run.

    Spans go to the OTLP endpoint, or to the console when debugging.

    Args:
        settings: Plugin settings

    Returns:
        The installed tracer provider, or None when tracing is disabled
    """
    if not settings.otel_enabled:
        logger.debug("OpenTelemetry disabled")
        return None

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "k8s.namespace.name": settings.job_namespace,
        }
    )
    provider = TracerProvider(resource=resource)

    if settings.debug:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    else:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_endpoint)
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        except Exception as e:
            logger.warning("Failed to configure OTLP exporter: %s", e)

    trace.set_tracer_provider(provider)

    logger.info(
        "OpenTelemetry configured: service=%s, endpoint=%s",
        settings.otel_service_name,
        settings.otel_exporter_endpoint,
    )
    return provider


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for the given module name.

    Args:
        name: Module name (typically __name__)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)
