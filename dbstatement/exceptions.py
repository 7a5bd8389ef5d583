"""Exceptions raised by `dbstatement`.

Only `DbStatementConfigError` can ever reach user code. The other errors are raised inside
the redactors and always recovered from before returning.
"""

from __future__ import annotations


class DbStatementError(Exception):
    """Base class for all `dbstatement` errors."""


class DbStatementConfigError(DbStatementError, ValueError):
    """Error raised when there is a problem with the configuration."""


class StatementParseError(DbStatementError):
    """A statement or request body could not be parsed."""


class StatementSizeLimitExceeded(DbStatementError):
    """A statement or request body is larger or deeper than the configured bound."""

    def __init__(self, what: str, limit: int) -> None:
        self.limit = limit
        super().__init__(f'{what} exceeds the limit of {limit}')
