import logging

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
import pytest

from sublet_ingest.core.config import Settings, get_settings
from sublet_ingest.core.telemetry import TraceContextFilter, otlp_headers, span_exporter


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUBLET_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("SUBLET_AI_EXTRACTION_ENABLED", "false")
    monkeypatch.setenv("SUBLET_INGEST_BATCH_DEADLINE_SECONDS", "240")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.storage_backend == "memory"
    assert settings.ai_extraction_enabled is False
    assert settings.ingest_batch_deadline_seconds == 240.0
    assert get_settings() is settings
    get_settings.cache_clear()


def test_settings_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.ai_min_interval_seconds == 4.5
    assert settings.dedup_delete_batch_size == 400
    assert settings.ingest_batch_deadline_seconds is None


def test_otlp_headers_are_lowercased_and_unquoted() -> None:
    assert otlp_headers(None) == {}
    assert otlp_headers("Api-Key=abc,x-tenant=t1%20east,broken") == {"api-key": "abc", "x-tenant": "t1 east"}


def test_span_exporter_follows_configured_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)

    assert span_exporter(Settings(_env_file=None)) is None
    assert isinstance(
        span_exporter(Settings(_env_file=None, otel_exporter_otlp_endpoint="http://collector:4318/v1/traces")),
        OTLPSpanExporter,
    )

    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")
    assert isinstance(span_exporter(Settings(_env_file=None)), OTLPSpanExporter)


def test_trace_context_filter_stamps_ids_outside_spans() -> None:
    record = logging.LogRecord("sublet_ingest", logging.INFO, __file__, 1, "hello", None, None)

    assert TraceContextFilter().filter(record) is True
    assert record.trace_id == "0" * 32
    assert record.span_id == "0" * 16
