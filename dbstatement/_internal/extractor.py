from __future__ import annotations

from typing import NamedTuple


class OperationTarget(NamedTuple):
    """The two parts a span name is built from: `"<operation> <namespace>"`."""

    operation: str
    """The canonical verb, e.g. `'SELECT'` for SQL or `'POST'` for a search request."""

    namespace: str | None
    """The database or index the operation targets, if known."""


def sql_target(operation: str, namespace: str | None = None) -> OperationTarget:
    """Target of a SQL statement. `operation` comes from `redact_sql`, `namespace` is the database in use."""
    return OperationTarget(operation, namespace or None)


def request_target(method: str, endpoint: str) -> OperationTarget:
    """Target of a REST request to a search engine, e.g. `('POST', 'my-index')` for `POST my-index/_search`."""
    return OperationTarget(method.strip().upper(), index_from_endpoint(endpoint))


def strip_query_string(endpoint: str) -> str:
    return endpoint.split('?', 1)[0].split('#', 1)[0]


def index_from_endpoint(endpoint: str) -> str | None:
    """The index name segment of a REST path, or `None` for cluster level endpoints.

        >>> index_from_endpoint('/my-index/_search?q=x')
        'my-index'
        >>> index_from_endpoint('_cluster/health') is None
        True
    """
    path = strip_query_string(endpoint).lstrip('/')
    first_segment = path.split('/', 1)[0]
    if not first_segment or first_segment.startswith('_'):
        return None
    return first_segment


def endpoint_api(endpoint: str) -> str:
    """The API part of a REST path, i.e. everything from the first `_` segment, e.g. `'_msearch/template'`."""
    segments = strip_query_string(endpoint).strip('/').split('/')
    for i, segment in enumerate(segments):
        if segment.startswith('_'):
            return '/'.join(segments[i:])
    return ''
