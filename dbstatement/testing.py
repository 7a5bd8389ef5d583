"""Helpers for asserting on the spans dbstatement creates."""

from __future__ import annotations

from typing import Any, Sequence

from opentelemetry.sdk.trace import Event, ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from opentelemetry.sdk.trace.id_generator import IdGenerator
from opentelemetry.semconv.trace import SpanAttributes
from opentelemetry.trace import INVALID_SPAN_CONTEXT, SpanContext

__all__ = [
    'IncrementalIdGenerator',
    'TestExporter',
]


class TestExporter(SpanExporter):
    """Keeps every exported span in memory so tests can compare them against plain dicts."""

    # Not a test class, despite the name.
    __test__ = False

    def __init__(self) -> None:
        self.exported_spans: list[ReadableSpan] = []

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        self.exported_spans += spans
        return SpanExportResult.SUCCESS

    def clear(self) -> None:
        self.exported_spans = []

    def exported_spans_as_dict(self, include_instrumentation_scope: bool = False) -> list[dict[str, Any]]:
        """The exported spans in export order, i.e. children before their parents.

        Each span becomes a dict with `name`, `kind`, `context`, `parent`, `status` and `attributes`,
        plus `events` if it has any. Exception stack traces are reduced to their last line.
        """
        return [_span_as_dict(span, include_instrumentation_scope) for span in self.exported_spans]


def _span_as_dict(span: ReadableSpan, include_instrumentation_scope: bool) -> dict[str, Any]:
    result: dict[str, Any] = {
        'name': span.name,
        'kind': span.kind.name,
        'context': _context_as_dict(span.context or INVALID_SPAN_CONTEXT),
        'parent': _context_as_dict(span.parent) if span.parent else None,
        'status': span.status.status_code.name,
        'attributes': dict(span.attributes or {}),
    }
    if include_instrumentation_scope:
        result['instrumentation_scope'] = span.instrumentation_scope.name if span.instrumentation_scope else None
    if span.events:
        result['events'] = [_event_as_dict(event) for event in span.events]
    return result


def _context_as_dict(context: SpanContext) -> dict[str, Any]:
    return {'trace_id': context.trace_id, 'span_id': context.span_id, 'is_remote': context.is_remote}


def _event_as_dict(event: Event) -> dict[str, Any]:
    result: dict[str, Any] = {'name': event.name}
    if event.attributes:
        attributes = result['attributes'] = dict(event.attributes)
        stacktrace = attributes.get(SpanAttributes.EXCEPTION_STACKTRACE)
        if isinstance(stacktrace, str):
            lines = [line.strip() for line in stacktrace.splitlines() if line.strip()]
            attributes[SpanAttributes.EXCEPTION_STACKTRACE] = lines[-1] if lines else ''
    return result


class IncrementalIdGenerator(IdGenerator):
    """Trace and span IDs counting up from 1, so that expected spans can be written out literally."""

    def __init__(self) -> None:
        self.trace_id_counter = 0
        self.span_id_counter = 0

    def generate_span_id(self) -> int:
        self.span_id_counter += 1
        return self.span_id_counter

    def generate_trace_id(self) -> int:
        self.trace_id_counter += 1
        return self.trace_id_counter
