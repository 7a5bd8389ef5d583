from __future__ import annotations

import functools
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

from opentelemetry import context as context_api

from .constants import TRUNCATION_MARKER

if sys.version_info >= (3, 11):  # pragma: no branch
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

if TYPE_CHECKING:
    from typing_extensions import ParamSpec

    P = ParamSpec('P')

T = TypeVar('T')

logger = logging.getLogger('dbstatement')


def truncate_string(s: str, *, max_length: int, middle: str = TRUNCATION_MARKER) -> str:
    """Cut `s` down to `max_length` characters by replacing its middle with `middle`.

    The head keeps the extra character when the split is uneven.
    """
    if len(s) <= max_length:
        return s
    if max_length <= len(middle):
        return s[:max_length]
    kept = max_length - len(middle)
    tail = kept // 2
    return s[: kept - tail] + middle + (s[len(s) - tail :] if tail else '')


def first_word(text: str) -> str:
    """The first whitespace-delimited word of `text`, upper-cased, or `''`."""
    parts = text.split(None, 1)
    return parts[0].upper() if parts else ''


def read_toml_file(path: Path) -> dict[str, Any]:
    with path.open('rb') as f:
        return tomllib.load(f)


# The SDK and older instrumentations don't agree on the context key, so both are set and checked.
_SUPPRESSION_KEYS: tuple[str, ...] = tuple(
    key
    for key in ('suppress_instrumentation', getattr(context_api, '_SUPPRESS_INSTRUMENTATION_KEY', None))
    if key is not None
)


def is_instrumentation_suppressed() -> bool:
    """Whether the current context asks for no spans to be created.

    True inside `suppress_instrumentation()` and inside OpenTelemetry's own equivalent.
    """
    return any(context_api.get_value(key) for key in _SUPPRESSION_KEYS)


@contextmanager
def suppress_instrumentation() -> Iterator[None]:
    """Don't create any spans, from dbstatement or from OpenTelemetry instrumentation, inside this block."""
    ctx = context_api.get_current()
    for key in _SUPPRESSION_KEYS:
        ctx = context_api.set_value(key, True, ctx)
    token = context_api.attach(ctx)
    try:
        yield
    finally:
        context_api.detach(token)


def _should_reraise() -> bool:
    # Bugs surface as test failures, except in tests of the error handling itself.
    running_test = os.environ.get('PYTEST_CURRENT_TEST') or ''
    return bool(running_test) and 'test_internal_exception' not in running_test


def log_internal_error() -> None:
    """Log the exception currently being handled, which must never break the caller's database call."""
    if _should_reraise():
        raise

    with suppress_instrumentation():
        logger.exception(
            'Caught an internal error in dbstatement. '
            'The database call itself is not affected, its span is just missing statement attributes.'
        )


class HandleInternalErrors:
    """Swallow and log exceptions, either as a context manager or as a decorator returning `None` on failure."""

    def __enter__(self) -> None:
        return None

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if not isinstance(exc_val, Exception):
            return False
        log_internal_error()
        return True

    def __call__(self, func: Callable[P, T]) -> Callable[P, T | None]:
        @functools.wraps(func)
        def guarded(*args: P.args, **kwargs: P.kwargs) -> T | None:
            with self:
                return func(*args, **kwargs)
            return None

        return guarded


handle_internal_errors = HandleInternalErrors()
