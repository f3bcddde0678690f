from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.util.re import parse_env_headers

from sublet_ingest.core.config import Settings

logger = logging.getLogger(__name__)

CORRELATED_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# The exporter resolves these itself, including the /v1/traces suffix for the generic one.
_OTLP_ENDPOINT_ENV = ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT")

_HTTPX_INSTRUMENTOR = HTTPXClientInstrumentor()


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


class TraceContextFilter(logging.Filter):
    """Stamps ``trace_id``/``span_id`` of the active span onto every record a handler emits."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "0" * 32
        record.span_id = format(context.span_id, "016x") if context.is_valid else "0" * 16
        return True


def configure_logging(settings: Settings | None = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    correlate = settings is None or settings.otel_log_correlation
    handler = logging.StreamHandler()
    if correlate:
        handler.addFilter(TraceContextFilter())
    handler.setFormatter(logging.Formatter(CORRELATED_FORMAT if correlate else PLAIN_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def setup_telemetry(settings: Settings, *, service_suffix: str = "") -> TelemetryRuntime:
    if not settings.otel_enabled:
        return TelemetryRuntime(enabled=False, provider=None)

    provider = _tracer_provider(settings, f"{settings.otel_service_name}{service_suffix}")
    exporter = span_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _HTTPX_INSTRUMENTOR.instrument(tracer_provider=provider)
    return TelemetryRuntime(enabled=True, provider=provider)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    runtime = setup_telemetry(settings)
    if runtime.enabled:
        FastAPIInstrumentor.instrument_app(app, tracer_provider=runtime.provider)
    return runtime


def shutdown_telemetry(runtime: TelemetryRuntime, app: FastAPI | None = None) -> None:
    if not runtime.enabled:
        return
    if app is not None:
        FastAPIInstrumentor.uninstrument_app(app)
    _HTTPX_INSTRUMENTOR.uninstrument()
    if runtime.provider is not None:
        runtime.provider.force_flush()
        runtime.provider.shutdown()


def span_exporter(settings: Settings) -> OTLPSpanExporter | None:
    """Exporter for the configured collector, or ``None`` to keep spans in-process."""
    if settings.otel_exporter_otlp_endpoint:
        return OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            headers=otlp_headers(settings.otel_exporter_otlp_headers) or None,
        )
    if any(os.getenv(name) for name in _OTLP_ENDPOINT_ENV):
        return OTLPSpanExporter()
    logger.info("no OTLP endpoint configured; spans for %s stay in-process", settings.otel_service_name)
    return None


def otlp_headers(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    return dict(parse_env_headers(raw, liberal=True))


def _tracer_provider(settings: Settings, service_name: str) -> TracerProvider:
    resource = Resource.create({SERVICE_NAME: service_name, DEPLOYMENT_ENVIRONMENT: settings.environment})
    return TracerProvider(resource=resource, sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio))
