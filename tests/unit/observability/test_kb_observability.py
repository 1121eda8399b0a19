"""Unit tests for observability module."""

import json
import logging

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
import pytest

from kb_search.observability import (
    SEARCH_REQUESTS,
    JsonFormatter,
    configure_logging,
    create_span,
    get_metrics,
    get_trace_context,
    set_trace_context,
    track_latency,
    tracing as tracing_module,
)
from kb_search.observability.metrics import SEARCH_LATENCY


def _record(msg="test message", **extra):
    record = logging.LogRecord(
        name="kb_search.search.index_writer",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for structured JSON logging."""

    def test_format_includes_trace_context(self):
        set_trace_context("a" * 32, "b" * 16)
        data = json.loads(JsonFormatter().format(_record()))
        assert data["message"] == "test message"
        assert data["trace_id"] == "a" * 32
        assert data["span_id"] == "b" * 16
        assert data["component"] == "index_writer"

    def test_extra_fields_and_redaction(self):
        data = json.loads(JsonFormatter().format(_record(document_id="7", token="secret-value")))
        assert data["document_id"] == "7"
        assert data["token"] == "[REDACTED]"

    def test_long_messages_truncated(self):
        data = json.loads(JsonFormatter().format(_record("x" * 5000)))
        assert len(data["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3

    def test_sets_are_serialized_sorted(self):
        data = json.loads(JsonFormatter().format(_record(tags=frozenset({"b", "a"}))))
        assert data["tags"] == ["a", "b"]


@pytest.mark.unit
def test_get_trace_context_generates_ids():
    set_trace_context("", "")
    ctx = get_trace_context()
    assert len(ctx["trace_id"]) == 32
    assert len(ctx["span_id"]) == 16


@pytest.mark.unit
def test_configure_logging_installs_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("debug", json_output=True, logger_levels={"kb_search.engine": "warning"})
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("kb_search.engine").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("kb_search.engine").setLevel(logging.NOTSET)


@pytest.mark.unit
class TestTracing:
    """Span helpers."""

    @pytest.fixture
    def exporter(self, monkeypatch):
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        monkeypatch.setitem(tracing_module._tracer_holder, "tracer", provider.get_tracer("test"))
        return exporter

    def test_create_span_records_attributes(self, exporter):
        with create_span("index.apply", attributes={"kb.document_id": "1"}):
            pass
        (span,) = exporter.get_finished_spans()
        assert span.name == "index.apply"
        assert span.attributes["kb.document_id"] == "1"

    def test_create_span_marks_errors(self, exporter):
        with pytest.raises(ValueError), create_span("kb_search.search"):
            raise ValueError("boom")
        (span,) = exporter.get_finished_spans()
        assert span.status.status_code is StatusCode.ERROR
        assert span.events[0].name == "exception"

    def test_span_ids_reach_log_context(self, exporter):
        with create_span("kb_search.search") as span:
            ctx = get_trace_context()
            assert ctx["span_id"] == format(span.get_span_context().span_id, "016x")


@pytest.mark.unit
class TestMetrics:
    """Prometheus exposition."""

    def test_search_metrics_exposed(self, engine):
        engine.search({"query": "printer"})
        output = get_metrics().decode()
        assert "kb_search_requests_total" in output
        assert 'index="test"' in output

    def test_track_latency_observes(self):
        with track_latency(SEARCH_LATENCY, index="latency-test"):
            pass
        assert 'kb_search_latency_seconds_count{index="latency-test"} 1.0' in get_metrics().decode()

    def test_counter_labels(self):
        SEARCH_REQUESTS.labels(index="counter-test", status="ok").inc()
        assert 'kb_search_requests_total{index="counter-test",status="ok"} 1.0' in get_metrics().decode()
