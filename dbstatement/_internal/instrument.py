from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from opentelemetry import trace as trace_api
from opentelemetry.semconv.trace import SpanAttributes
from opentelemetry.trace import Span, SpanKind, TracerProvider
from opentelemetry.util import types as otel_types

from ..version import VERSION
from .config import StatementCaptureOptions
from .constants import (
    ATTRIBUTES_DB_NAMESPACE,
    ATTRIBUTES_DB_OPERATION_NAME,
    ATTRIBUTES_DB_QUERY_TEXT,
    ATTRIBUTES_DB_SYSTEM_NAME,
    SEMCONV_STABILITY_OPT_IN_ENV_VAR,
    SemconvMode,
)
from .statement import Statement, request_statement, sql_statement
from .utils import handle_internal_errors, is_instrumentation_suppressed


def semconv_mode_from_env() -> SemconvMode:
    """Which database attribute names to emit, based on `OTEL_SEMCONV_STABILITY_OPT_IN`.

    `database` switches to the stable names, `database/dup` emits both.
    """
    opt_in = {part.strip() for part in os.getenv(SEMCONV_STABILITY_OPT_IN_ENV_VAR, '').split(',')}
    if 'database/dup' in opt_in:
        return 'dup'
    if 'database' in opt_in:
        return 'stable'
    return 'old'


class StatementInstrumenter:
    """Creates client spans for database calls, named and annotated from redacted statements.

    This is the boundary between the code that intercepts a database client and the redaction engine:
    the interceptor wraps each call in `sql_span` or `request_span`, everything else happens here.

    ```py
    instrumenter = StatementInstrumenter('clickhouse', options=StatementCaptureOptions.load())

    with instrumenter.sql_span('select * from users where id = 42', namespace='default'):
        client.query('select * from users where id = 42')
    ```

    A failure to build the statement never prevents the span from being created or the call from running.
    """

    def __init__(
        self,
        db_system: str,
        *,
        options: StatementCaptureOptions | None = None,
        tracer_provider: TracerProvider | None = None,
        semconv_mode: SemconvMode | None = None,
    ) -> None:
        self.db_system = db_system
        self.options = options or StatementCaptureOptions()
        self.semconv_mode = semconv_mode or semconv_mode_from_env()
        tracer_provider = tracer_provider or trace_api.get_tracer_provider()
        self._tracer = tracer_provider.get_tracer('dbstatement', VERSION)

    @contextmanager
    def sql_span(self, text: str | None, *, namespace: str | None = None) -> Iterator[Span]:
        """Start a client span around the execution of a SQL-like statement."""
        statement = self._build(sql_statement, text, namespace=namespace, options=self.options)
        with self._start_span(statement) as span:
            yield span

    @contextmanager
    def request_span(
        self,
        method: str,
        endpoint: str,
        body: str | bytes | None = None,
        *,
        content_type: str | None = None,
    ) -> Iterator[Span]:
        """Start a client span around a REST request to a search engine."""
        statement = self._build(
            request_statement, method, endpoint, body, content_type=content_type, options=self.options
        )
        with self._start_span(statement) as span:
            yield span

    @staticmethod
    @handle_internal_errors
    def _build(builder: Callable[..., Statement], *args: Any, **kwargs: Any) -> Statement:
        return builder(*args, **kwargs)

    @contextmanager
    def _start_span(self, statement: Statement | None) -> Iterator[Span]:
        if is_instrumentation_suppressed():
            yield trace_api.INVALID_SPAN
            return

        with self._tracer.start_as_current_span(
            self.span_name(statement),
            kind=SpanKind.CLIENT,
            attributes=self.span_attributes(statement),
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            yield span

    def span_name(self, statement: Statement | None) -> str:
        """`"<operation> <namespace>"`, falling back to whichever part is known, then to the database system."""
        if statement is None:
            return self.db_system
        name = ' '.join(part for part in (statement.operation, statement.namespace) if part)
        return name or self.db_system

    def span_attributes(self, statement: Statement | None) -> dict[str, otel_types.AttributeValue]:
        old = self.semconv_mode in ('old', 'dup')
        stable = self.semconv_mode in ('stable', 'dup')
        attributes: dict[str, otel_types.AttributeValue] = {}

        def set_attribute(old_key: str, stable_key: str, value: str | None) -> None:
            if not value:
                return
            if old:
                attributes[old_key] = value
            if stable:
                attributes[stable_key] = value

        set_attribute(SpanAttributes.DB_SYSTEM, ATTRIBUTES_DB_SYSTEM_NAME, self.db_system)
        if statement is not None:
            set_attribute(SpanAttributes.DB_NAME, ATTRIBUTES_DB_NAMESPACE, statement.namespace)
            set_attribute(SpanAttributes.DB_OPERATION, ATTRIBUTES_DB_OPERATION_NAME, statement.operation)
            set_attribute(SpanAttributes.DB_STATEMENT, ATTRIBUTES_DB_QUERY_TEXT, statement.sanitized)
        return attributes
