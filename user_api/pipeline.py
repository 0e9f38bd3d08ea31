import logging
from typing import Iterable

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

from user_api.exporter import ConsoleActivityExporter
from user_api.settings import Settings

logger = logging.getLogger(__name__)


class TelemetryPipeline:
    """
    The process's span export pipeline: one tracer provider and the
    processors/exporters attached to it.

    Construct once at startup (see `setup_telemetry`), hand it to whatever
    creates spans, and call `shutdown()` once on the way out.
    """

    def __init__(self, provider: TracerProvider, service_name: str):
        self.provider = provider
        self.service_name = service_name
        self.tracer: trace.Tracer = provider.get_tracer(service_name)
        self._shut_down = False

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.provider.force_flush(timeout_millis)

    def shutdown(self) -> None:
        """Flush and close every processor. Only the first call does anything."""
        if self._shut_down:
            return
        self._shut_down = True
        self.provider.shutdown()


def setup_telemetry(
    settings: Settings,
    span_processors: Iterable[SpanProcessor] = (),
) -> TelemetryPipeline:
    """Build the tracer provider with its exporters."""
    resource = Resource.create({
        "service.name": settings.service_name,
        "deployment.environment": settings.environment,
    })
    provider = TracerProvider(resource=resource)

    # Batched network export to the collector
    if settings.otlp_enabled:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )
        logger.info("Exporting spans over OTLP to %s", settings.otlp_endpoint)

    # Synchronous local output for debugging
    if settings.console_exporter_enabled:
        provider.add_span_processor(
            SimpleSpanProcessor(ConsoleActivityExporter(filepath=settings.activity_log_path))
        )

    for processor in span_processors:
        provider.add_span_processor(processor)

    logger.info("OpenTelemetry SDK initialized")
    return TelemetryPipeline(provider, settings.service_name)
