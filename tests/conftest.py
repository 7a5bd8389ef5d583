from __future__ import annotations

import os
from pathlib import Path

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor

from dbstatement import StatementCaptureOptions, StatementInstrumenter
from dbstatement.testing import IncrementalIdGenerator, TestExporter


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Ensure that config in the environment or a nearby pyproject.toml doesn't interfere."""
    for name in list(os.environ):
        if name.startswith('DBSTATEMENT_'):
            monkeypatch.delenv(name)
    monkeypatch.delenv('OTEL_SEMCONV_STABILITY_OPT_IN', raising=False)
    monkeypatch.setenv('DBSTATEMENT_CONFIG_DIR', str(tmp_path))


@pytest.fixture
def id_generator() -> IncrementalIdGenerator:
    return IncrementalIdGenerator()


@pytest.fixture
def exporter() -> TestExporter:
    return TestExporter()


@pytest.fixture
def tracer_provider(exporter: TestExporter, id_generator: IncrementalIdGenerator) -> TracerProvider:
    provider = TracerProvider(id_generator=id_generator)
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


@pytest.fixture
def options() -> StatementCaptureOptions:
    return StatementCaptureOptions(default_namespace='default')


@pytest.fixture
def instrumenter(tracer_provider: TracerProvider, options: StatementCaptureOptions) -> StatementInstrumenter:
    return StatementInstrumenter('clickhouse', options=options, tracer_provider=tracer_provider)
