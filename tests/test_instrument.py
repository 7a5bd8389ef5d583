from __future__ import annotations

import logging

import pytest
from dirty_equals import IsPartialDict, IsStr
from inline_snapshot import snapshot
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import INVALID_SPAN

import dbstatement._internal.instrument
from dbstatement import StatementCaptureOptions, StatementInstrumenter, suppress_instrumentation
from dbstatement._internal.instrument import semconv_mode_from_env
from dbstatement.testing import TestExporter


def test_sql_spans(instrumenter: StatementInstrumenter, exporter: TestExporter):
    with instrumenter.sql_span("insert into test_table values('1')('2')('3')"):
        pass
    with instrumenter.sql_span('select * from test_table limit 1', namespace='analytics'):
        pass

    assert exporter.exported_spans_as_dict() == snapshot(
        [
            {
                'name': 'INSERT default',
                'kind': 'CLIENT',
                'context': {'trace_id': 1, 'span_id': 1, 'is_remote': False},
                'parent': None,
                'status': 'UNSET',
                'attributes': {
                    'db.system': 'clickhouse',
                    'db.name': 'default',
                    'db.operation': 'INSERT',
                    'db.statement': 'insert into test_table values(?)(?)(?)',
                },
            },
            {
                'name': 'SELECT analytics',
                'kind': 'CLIENT',
                'context': {'trace_id': 2, 'span_id': 2, 'is_remote': False},
                'parent': None,
                'status': 'UNSET',
                'attributes': {
                    'db.system': 'clickhouse',
                    'db.name': 'analytics',
                    'db.operation': 'SELECT',
                    'db.statement': 'select * from test_table limit ?',
                },
            },
        ]
    )


def test_named_parameters_are_kept(instrumenter: StatementInstrumenter, exporter: TestExporter):
    with instrumenter.sql_span('select * from test_table where value={param_s: String}'):
        pass

    [span] = exporter.exported_spans_as_dict()
    assert span['attributes']['db.statement'] == 'select * from test_table where value={param_s: String}'


def test_child_of_current_span(
    instrumenter: StatementInstrumenter, exporter: TestExporter, tracer_provider: TracerProvider
):
    with tracer_provider.get_tracer('app').start_as_current_span('handle request'):
        with instrumenter.sql_span('select 1'):
            pass

    spans = exporter.exported_spans_as_dict()
    assert [(span['name'], span['context']['span_id'], span['parent']) for span in spans] == snapshot(
        [
            ('SELECT default', 2, {'trace_id': 1, 'span_id': 1, 'is_remote': False}),
            ('handle request', 1, None),
        ]
    )


def test_stable_attribute_names(tracer_provider: TracerProvider, exporter: TestExporter):
    instrumenter = StatementInstrumenter('clickhouse', tracer_provider=tracer_provider, semconv_mode='stable')
    with instrumenter.sql_span('select 1', namespace='default'):
        pass

    assert exporter.exported_spans_as_dict()[0]['attributes'] == snapshot(
        {
            'db.system.name': 'clickhouse',
            'db.namespace': 'default',
            'db.operation.name': 'SELECT',
            'db.query.text': 'select ?',
        }
    )


def test_duplicated_attribute_names_from_env(
    tracer_provider: TracerProvider, exporter: TestExporter, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv('OTEL_SEMCONV_STABILITY_OPT_IN', 'http, database/dup')
    instrumenter = StatementInstrumenter('clickhouse', tracer_provider=tracer_provider)
    assert instrumenter.semconv_mode == 'dup'
    with instrumenter.sql_span('select 1'):
        pass

    assert exporter.exported_spans_as_dict()[0]['attributes'] == snapshot(
        {
            'db.system': 'clickhouse',
            'db.system.name': 'clickhouse',
            'db.operation': 'SELECT',
            'db.operation.name': 'SELECT',
            'db.statement': 'select ?',
            'db.query.text': 'select ?',
        }
    )


@pytest.mark.parametrize(
    'opt_in,expected',
    [
        ('', 'old'),
        ('http', 'old'),
        ('database', 'stable'),
        ('http,database', 'stable'),
        ('database/dup', 'dup'),
        ('database,database/dup', 'dup'),
    ],
)
def test_semconv_mode_from_env(monkeypatch: pytest.MonkeyPatch, opt_in: str, expected: str):
    monkeypatch.setenv('OTEL_SEMCONV_STABILITY_OPT_IN', opt_in)
    assert semconv_mode_from_env() == expected


def test_request_spans(tracer_provider: TracerProvider, exporter: TestExporter):
    instrumenter = StatementInstrumenter('opensearch', tracer_provider=tracer_provider)
    with instrumenter.request_span('GET', '_cluster/health'):
        pass
    with instrumenter.request_span(
        'POST',
        'test-index/_search',
        b'{"query":{"match":{"message":{"query":"test"}}}}',
        content_type='application/json',
    ):
        pass

    assert [(span['name'], span['attributes']) for span in exporter.exported_spans_as_dict()] == snapshot(
        [
            (
                'GET',
                {'db.system': 'opensearch', 'db.operation': 'GET', 'db.statement': 'GET _cluster/health'},
            ),
            (
                'POST test-index',
                {
                    'db.system': 'opensearch',
                    'db.name': 'test-index',
                    'db.operation': 'POST',
                    'db.statement': '{"query":{"match":{"message":{"query":"?"}}}}',
                },
            ),
        ]
    )


def test_capture_statement_disabled(tracer_provider: TracerProvider, exporter: TestExporter):
    options = StatementCaptureOptions(capture_statement=False)
    instrumenter = StatementInstrumenter('clickhouse', options=options, tracer_provider=tracer_provider)
    with instrumenter.sql_span("select * from users where name = 'alice'", namespace='default'):
        pass

    [span] = exporter.exported_spans_as_dict()
    assert span['name'] == 'SELECT default'
    assert span['attributes'] == {'db.system': 'clickhouse', 'db.name': 'default', 'db.operation': 'SELECT'}


def test_error_in_database_call(instrumenter: StatementInstrumenter, exporter: TestExporter):
    with pytest.raises(ConnectionError, match='connection lost'):
        with instrumenter.sql_span('select 1'):
            raise ConnectionError('connection lost')

    [span] = exporter.exported_spans_as_dict()
    assert span == IsPartialDict(
        name='SELECT default',
        status='ERROR',
        events=[
            {
                'name': 'exception',
                'attributes': IsPartialDict(
                    {
                        'exception.type': 'ConnectionError',
                        'exception.message': 'connection lost',
                        'exception.stacktrace': IsStr(regex='ConnectionError: connection lost'),
                    }
                ),
            }
        ],
    )


def test_suppress_instrumentation(instrumenter: StatementInstrumenter, exporter: TestExporter):
    with suppress_instrumentation():
        with instrumenter.sql_span('select 1') as span:
            assert span is INVALID_SPAN
        with instrumenter.request_span('GET', '_cluster/health'):
            pass

    assert exporter.exported_spans_as_dict() == []


def test_internal_exception_building_statement(
    instrumenter: StatementInstrumenter,
    exporter: TestExporter,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
):
    def broken_sql_statement(*args: object, **kwargs: object):
        raise RuntimeError('broken')

    monkeypatch.setattr(dbstatement._internal.instrument, 'sql_statement', broken_sql_statement)

    with caplog.at_level(logging.ERROR, logger='dbstatement'):
        with instrumenter.sql_span("select * from users where name = 'alice'") as span:
            assert span.is_recording()

    [record] = caplog.records
    assert record.message.startswith('Caught an internal error in dbstatement.')
    assert record.exc_info and isinstance(record.exc_info[1], RuntimeError)
    assert 'alice' not in caplog.text

    assert exporter.exported_spans_as_dict() == snapshot(
        [
            {
                'name': 'clickhouse',
                'kind': 'CLIENT',
                'context': {'trace_id': 1, 'span_id': 1, 'is_remote': False},
                'parent': None,
                'status': 'UNSET',
                'attributes': {'db.system': 'clickhouse'},
            }
        ]
    )
