from __future__ import annotations

from .constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_INPUT_LENGTH, PLACEHOLDER
from .json_body import decode_body, redact_json
from .utils import logger

SEGMENT_SEPARATOR = ';'


def redact_ndjson(
    body: str | bytes | None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH,
    keep_invalid: bool = False,
    encoding: str = 'utf-8',
) -> str:
    """Redact a newline-delimited batch of JSON documents, e.g. an `_msearch` or `_bulk` body.

    Every line is redacted on its own with `redact_json` and the results are joined with `;`.
    A single trailing newline doesn't count as an extra empty document.

    A line that can't be redacted becomes a bare `?` so the other documents keep their position,
    or stays as it was if `keep_invalid` is true. This never raises.

    Lines beyond the first `max_input_length` characters of the body are dropped.
    """
    text = decode_body(body, encoding)
    if not text:
        return ''

    segments: list[str] = []
    budget = max_input_length
    lines = text.split('\n')
    if lines[-1] == '':
        lines.pop()
    for line in lines:
        line = line[:-1] if line.endswith('\r') else line
        budget -= len(line) + 1
        if budget < -1:
            logger.debug('Batch body longer than %d characters, dropping the remaining lines', max_input_length)
            break
        redacted = redact_json(line, max_depth=max_depth, max_input_length=max_input_length, keep_invalid=keep_invalid)
        if redacted is None:
            redacted = line if keep_invalid else PLACEHOLDER
        segments.append(redacted)
    return SEGMENT_SEPARATOR.join(segments)
