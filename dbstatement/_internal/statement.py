from __future__ import annotations

from dataclasses import dataclass, field
from email.headerregistry import ContentTypeHeader
from email.policy import EmailPolicy

from .config import DEFAULT_OPTIONS, StatementCaptureOptions
from .constants import NDJSON_ENDPOINTS, BodyFormat
from .extractor import endpoint_api, request_target, sql_target, strip_query_string
from .json_body import decode_body, redact_json
from .ndjson import redact_ndjson
from .sql import redact_sql
from .utils import truncate_string


@dataclass(frozen=True)
class Statement:
    """A redacted database statement, ready to be copied into span attributes."""

    sanitized: str | None
    """The redacted statement or request body. `None` if statement capture is disabled."""

    operation: str
    """The canonical operation, e.g. `'SELECT'` or `'POST'`. May be empty."""

    namespace: str | None
    """The database or index the statement targets, if known."""

    raw: str | bytes | None = field(default=None, repr=False, compare=False)
    """The original statement. Never logged and never put on a span."""


def sql_statement(
    text: str | None,
    *,
    namespace: str | None = None,
    options: StatementCaptureOptions | None = None,
) -> Statement:
    """Build a `Statement` from SQL-like text, e.g. a ClickHouse query.

    Args:
        text: The statement as passed to the database client.
        namespace: The database in use. Defaults to `options.default_namespace`.
        options: Capture options, see [`StatementCaptureOptions`][dbstatement.StatementCaptureOptions].
    """
    options = options or DEFAULT_OPTIONS
    redaction = redact_sql(text, max_input_length=options.max_input_length)
    target = sql_target(redaction.operation, namespace or options.default_namespace)
    sanitized = None
    if options.capture_statement:
        sanitized = truncate_string(redaction.sanitized, max_length=options.max_length)
    return Statement(sanitized=sanitized, operation=target.operation, namespace=target.namespace, raw=text)


def request_statement(
    method: str,
    endpoint: str,
    body: str | bytes | None = None,
    *,
    content_type: str | None = None,
    options: StatementCaptureOptions | None = None,
) -> Statement:
    """Build a `Statement` from a REST request to a search engine, e.g. OpenSearch.

    The operation is the HTTP method and the namespace is the index in the path, if any.
    A JSON body is redacted with `redact_json`, a batch body (`_msearch`, `_bulk`, ...)
    with `redact_ndjson`. Without a usable body the statement is `"<METHOD> <endpoint>"`,
    e.g. `'GET _cluster/health'`.

    Args:
        method: The HTTP method.
        endpoint: The request path, optionally with a query string, which is never captured.
        body: The request body, already read by the caller. `bytes` are decoded using the
            `charset` from `content_type`, UTF-8 by default.
        content_type: The request's `Content-Type` header, if known.
        options: Capture options, see [`StatementCaptureOptions`][dbstatement.StatementCaptureOptions].
    """
    options = options or DEFAULT_OPTIONS
    target = request_target(method, endpoint)
    sanitized: str | None = None
    if options.capture_statement:
        sanitized = _redact_body(body, content_type, endpoint, options)
        if not sanitized:
            sanitized = f'{target.operation} {strip_query_string(endpoint)}'.strip()
        sanitized = truncate_string(sanitized, max_length=options.max_length)
    return Statement(sanitized=sanitized, operation=target.operation, namespace=target.namespace, raw=body)


def _redact_body(
    body: str | bytes | None, content_type: str | None, endpoint: str, options: StatementCaptureOptions
) -> str | None:
    if not body:
        return None
    mime_type, charset = parse_content_type(content_type)
    text = decode_body(body, charset or 'utf-8')
    if text is None:
        return None
    body_format = detect_body_format(mime_type, endpoint, text)
    redact = {'json': redact_json, 'ndjson': redact_ndjson}.get(body_format or '')
    if redact is None:
        return None
    return redact(
        text,
        max_depth=options.max_depth,
        max_input_length=options.max_input_length,
        keep_invalid=options.keep_invalid_json,
    )


def parse_content_type(content_type: str | None) -> tuple[str | None, str | None]:
    """Split a `Content-Type` header into its lower-cased MIME type and charset.

        >>> parse_content_type('application/json; charset=UTF-8')
        ('application/json', 'UTF-8')
    """
    if not content_type:
        return None, None
    header = content_type_header_from_string(content_type)
    return header.content_type, header.params.get('charset') or None


def content_type_header_from_string(content_type: str) -> ContentTypeHeader:
    return EmailPolicy.header_factory('content-type', content_type)


def content_type_subtypes(subtype: str) -> set[str]:
    if subtype.startswith('x-'):
        subtype = subtype[2:]
    return set(subtype.split('+'))


def detect_body_format(mime_type: str | None, endpoint: str, body: str) -> BodyFormat | None:
    """Decide how a request body should be redacted, or `None` if it can't be."""
    is_batch_endpoint = endpoint_api(endpoint) in NDJSON_ENDPOINTS
    if mime_type is not None:
        maintype, _, subtype = mime_type.partition('/')
        subtypes = content_type_subtypes(subtype)
        if maintype != 'application':
            return None
        if 'ndjson' in subtypes:
            return 'ndjson'
        if 'json' in subtypes:
            # Clients commonly send batch bodies as `application/json` too.
            return 'ndjson' if is_batch_endpoint else 'json'
        return None
    if is_batch_endpoint:
        return 'ndjson'
    if body.lstrip().startswith(('{', '[')):
        return 'json'
    return None
