from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Tuple, Union

from typing_extensions import TypeAlias, assert_never

from ..exceptions import StatementParseError, StatementSizeLimitExceeded
from .constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_INPUT_LENGTH, PLACEHOLDER
from .utils import logger


@dataclass(frozen=True)
class JsonObject:
    """A JSON object. Entries are kept as pairs so that order and duplicate keys survive."""

    entries: Tuple[Tuple[str, JsonNode], ...]


@dataclass(frozen=True)
class JsonArray:
    items: Tuple[JsonNode, ...]


@dataclass(frozen=True)
class JsonScalar:
    """A string, number, boolean or null."""

    value: Any


JsonNode: TypeAlias = Union[JsonObject, JsonArray, JsonScalar]

REDACTED_SCALAR = JsonScalar(PLACEHOLDER)


def redact_json(
    body: str | bytes | None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    keep_invalid: bool = False,
    encoding: str = 'utf-8',
) -> str | None:
    """Replace every scalar value in a JSON document with `"?"`, keeping its shape.

    Keys, key order, array lengths and nesting are preserved, and the result is compact JSON:

        >>> redact_json('{"query": {"match": {"message": {"query": "test"}}}}')
        '{"query":{"match":{"message":{"query":"?"}}}}'

    This never raises.

    Args:
        body: The JSON text, or bytes in `encoding`.
        max_depth: Documents nested deeper than this are not redacted.
        max_input_length: Documents longer than this are not redacted.
        keep_invalid: What to return when `body` can't be redacted.
            If `False`, return `None`. If `True`, return the original text cut to `max_input_length`.
        encoding: Used to decode `body` if it's bytes.

    Returns: The redacted document, or `None` for an empty body.
    """
    text = decode_body(body, encoding)
    if text is None or not text.strip():
        return None

    try:
        return dump_node(redact_node(parse_json(text, max_input_length=max_input_length), max_depth=max_depth))
    except (StatementParseError, StatementSizeLimitExceeded) as e:
        logger.debug('JSON body not redacted: %s', e)
        if keep_invalid:
            return text[:max_input_length]
        return None


def decode_body(body: str | bytes | None, encoding: str) -> str | None:
    if body is None:
        return None
    if isinstance(body, str):
        text = body
    else:
        try:
            text = bytes(body).decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug('Could not decode request body as %s', encoding)
            return None
    # A leading byte order mark is not part of the document
    return text[1:] if text.startswith('\ufeff') else text


def parse_json(text: str, *, max_input_length: int = DEFAULT_MAX_INPUT_LENGTH) -> JsonNode:
    """Parse a JSON document into a tree of `JsonObject`, `JsonArray` and `JsonScalar` nodes."""
    if len(text) > max_input_length:
        raise StatementSizeLimitExceeded('JSON body', max_input_length)
    try:
        return _to_node(json.loads(text, object_pairs_hook=_object_from_pairs))
    except RecursionError:
        raise StatementSizeLimitExceeded('JSON nesting', sys.getrecursionlimit()) from None
    except ValueError as e:
        raise StatementParseError(f'invalid JSON: {e}') from None


def _object_from_pairs(pairs: list[tuple[str, Any]]) -> JsonObject:
    return JsonObject(tuple((key, _to_node(value)) for key, value in pairs))


def _to_node(value: Any) -> JsonNode:
    if isinstance(value, JsonObject):
        return value
    if isinstance(value, list):
        return JsonArray(tuple(_to_node(item) for item in value))
    return JsonScalar(value)


def redact_node(node: JsonNode, *, max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 1) -> JsonNode:
    """Return a tree with the same shape as `node` where every scalar is the placeholder."""
    if isinstance(node, JsonScalar):
        return REDACTED_SCALAR
    if _depth > max_depth:
        raise StatementSizeLimitExceeded('JSON nesting', max_depth)
    if isinstance(node, JsonObject):
        return JsonObject(
            tuple((key, redact_node(value, max_depth=max_depth, _depth=_depth + 1)) for key, value in node.entries)
        )
    if isinstance(node, JsonArray):
        return JsonArray(tuple(redact_node(item, max_depth=max_depth, _depth=_depth + 1) for item in node.items))
    assert_never(node)


def dump_node(node: JsonNode) -> str:
    """Serialize a tree to compact JSON, keeping the order of object entries."""
    parts: list[str] = []
    _dump_into(node, parts)
    return ''.join(parts)


def _dump_into(node: JsonNode, parts: list[str]) -> None:
    if isinstance(node, JsonScalar):
        parts.append(_dumps(node.value))
    elif isinstance(node, JsonObject):
        parts.append('{')
        for i, (key, value) in enumerate(node.entries):
            if i:
                parts.append(',')
            parts.append(_dumps(key))
            parts.append(':')
            _dump_into(value, parts)
        parts.append('}')
    elif isinstance(node, JsonArray):
        parts.append('[')
        for i, item in enumerate(node.items):
            if i:
                parts.append(',')
            _dump_into(item, parts)
        parts.append(']')
    else:
        assert_never(node)


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)
