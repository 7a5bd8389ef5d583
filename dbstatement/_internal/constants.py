from __future__ import annotations

from typing import Literal

PLACEHOLDER = '?'
"""The token substituted for every redacted literal or JSON scalar."""

DEFAULT_MAX_LENGTH = 4096
"""Default maximum length of a captured statement attribute."""

DEFAULT_MAX_INPUT_LENGTH = 1_000_000
"""Default maximum number of characters a single redaction call will look at."""

DEFAULT_MAX_DEPTH = 64
"""Default maximum nesting depth of a JSON body before redaction gives up."""

TRUNCATION_MARKER = '...'

BodyFormat = Literal['json', 'ndjson']
"""Request body formats that can be redacted."""

# Batch endpoints whose bodies alternate header and query documents line by line.
NDJSON_ENDPOINTS = ('_msearch', '_bulk', '_msearch/template')

# Stable database semantic conventions.
ATTRIBUTES_DB_SYSTEM_NAME = 'db.system.name'
ATTRIBUTES_DB_NAMESPACE = 'db.namespace'
ATTRIBUTES_DB_OPERATION_NAME = 'db.operation.name'
ATTRIBUTES_DB_QUERY_TEXT = 'db.query.text'

SEMCONV_STABILITY_OPT_IN_ENV_VAR = 'OTEL_SEMCONV_STABILITY_OPT_IN'

SemconvMode = Literal['old', 'stable', 'dup']
"""Which database attribute names spans get, see `OTEL_SEMCONV_STABILITY_OPT_IN`."""
