"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock, Mock

import pytest
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


@pytest.fixture
def settings():
    """Settings with every network/console exporter turned off."""
    from user_api.settings import Settings

    return Settings(
        otlp_enabled=False,
        console_exporter_enabled=False,
        http_instrumentation_enabled=False,
        database_path=None,
    )


@pytest.fixture
def span_exporter():
    """Collects finished spans in memory."""
    return InMemorySpanExporter()


@pytest.fixture
def pipeline(settings, span_exporter):
    """Telemetry pipeline that exports synchronously into span_exporter."""
    from user_api.pipeline import setup_telemetry

    pl = setup_telemetry(settings, span_processors=[SimpleSpanProcessor(span_exporter)])
    yield pl
    pl.shutdown()


@pytest.fixture
def tracer(pipeline):
    return pipeline.tracer


@pytest.fixture
def healthy_database():
    """Database client whose authenticate() succeeds."""
    db = Mock()
    db.authenticate = AsyncMock(return_value=None)
    return db


@pytest.fixture
def broken_database():
    """Database client whose authenticate() fails."""
    db = Mock()
    db.authenticate = AsyncMock(side_effect=ConnectionError("connection refused"))
    return db


@pytest.fixture
def finished_spans(span_exporter):
    """Callable returning finished spans keyed by name."""

    def _by_name():
        return {span.name: span for span in span_exporter.get_finished_spans()}

    return _by_name
