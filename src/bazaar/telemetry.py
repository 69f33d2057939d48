import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = structlog.get_logger(__name__)


def init_telemetry(
    service_name: str, otlp_endpoint: str = "http://jaeger:4317"
) -> trace.Tracer:
    """
    Install the global tracer provider for the marketplace.

    Each MarketService call opens a ``market.<operation>`` span under this
    provider. Spans go to the OTLP collector at ``otlp_endpoint``; when the
    exporter cannot be built they are printed to the console instead.

    Raises:
        ValueError: On a blank service name.
    """
    service_name = service_name.lower().strip()
    if not service_name:
        raise ValueError(
            "service_name must be provided for OpenTelemetry initialization"
        )

    resource = Resource.create(
        {"service.name": service_name, "service.namespace": "bazaar"}
    )
    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    except Exception as e:
        logger.warning("otlp_exporter_unavailable_using_console", error=str(e))
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(service_name)
