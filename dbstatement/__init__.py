"""**dbstatement** turns raw database and search requests into redacted, low-cardinality span attributes."""

from __future__ import annotations

from ._internal.config import StatementCaptureOptions
from ._internal.constants import PLACEHOLDER
from ._internal.extractor import OperationTarget, index_from_endpoint, request_target, sql_target
from ._internal.instrument import StatementInstrumenter
from ._internal.json_body import redact_json
from ._internal.ndjson import redact_ndjson
from ._internal.sql import SqlRedaction, redact_sql
from ._internal.statement import Statement, request_statement, sql_statement
from ._internal.utils import suppress_instrumentation
from .version import VERSION

__version__ = VERSION

__all__ = (
    'PLACEHOLDER',
    'redact_sql',
    'SqlRedaction',
    'redact_json',
    'redact_ndjson',
    'sql_target',
    'request_target',
    'index_from_endpoint',
    'OperationTarget',
    'Statement',
    'sql_statement',
    'request_statement',
    'StatementCaptureOptions',
    'StatementInstrumenter',
    'suppress_instrumentation',
    '__version__',
)
