"""Redaction of literal values in SQL-like statement text.

This is not a SQL parser. The tokenizer only understands enough of the syntax to tell
literals apart from everything else:

    >>> redact_sql("insert into test_table values('1')('2')('3')")
    SqlRedaction(sanitized='insert into test_table values(?)(?)(?)', operation='INSERT')
    >>> redact_sql('select * from test_table where value={param_s: String}').sanitized
    'select * from test_table where value={param_s: String}'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import NamedTuple

from .constants import DEFAULT_MAX_INPUT_LENGTH, PLACEHOLDER
from .utils import first_word, logger


class TokenKind(Enum):
    """Kinds of tokens produced by the tokenizer."""

    LITERAL = auto()  # 'text', 42, 3.14, 1e10, 0xFF
    IDENTIFIER = auto()  # keywords and names
    QUOTED_IDENTIFIER = auto()  # "name" or `name`
    PARAMETER_SPAN = auto()  # {name: Type}
    PUNCTUATION = auto()
    WHITESPACE = auto()
    COMMENT = auto()  # -- ... or /* ... */
    UNPARSED = auto()  # remainder after an unterminated quote


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str


class SqlRedaction(NamedTuple):
    """The result of `redact_sql`."""

    sanitized: str
    """The statement with every literal replaced by `?`."""

    operation: str
    """The first keyword of the statement, upper-cased, e.g. `'SELECT'`."""


PARAMETER_SPAN_RE = re.compile(r'\{\s*[A-Za-z_]\w*\s*:\s*[A-Za-z_][^{}]*?\s*\}')
NUMBER_RE = re.compile(r'0[xX][0-9a-fA-F]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')

_SKIPPED_BEFORE_OPERATION = {TokenKind.WHITESPACE, TokenKind.COMMENT}


def redact_sql(text: str | None, *, max_input_length: int = DEFAULT_MAX_INPUT_LENGTH) -> SqlRedaction:
    """Replace every literal value in `text` with `?` and find the statement's operation.

    String literals and numbers are redacted, named parameter spans like `{id: UInt64}`,
    identifiers, keywords and punctuation are kept exactly as written.

    This never raises. An unterminated quote leaves the rest of the statement as it was,
    and any other failure returns `text` unchanged.

    Args:
        text: The statement text.
        max_input_length: Only this many characters are looked at, anything after is dropped.

    Returns: The sanitized statement and its upper-cased operation.
    """
    if not text:
        return SqlRedaction('', '')

    truncated = len(text) > max_input_length
    if truncated:
        logger.debug('Statement longer than %d characters, redacting only the beginning', max_input_length)
        text = text[:max_input_length]

    try:
        tokens = tokenize(text)
    except Exception:
        logger.debug('Could not tokenize statement, leaving it unredacted', exc_info=True)
        return SqlRedaction(text, first_word(text))

    if truncated and tokens and tokens[-1].kind is TokenKind.UNPARSED:
        # The cut landed inside a quoted run
        tokens[-1] = Token(TokenKind.LITERAL, tokens[-1].text)

    sanitized = ''.join(PLACEHOLDER if token.kind is TokenKind.LITERAL else token.text for token in tokens)
    return SqlRedaction(sanitized, _operation(tokens, sanitized))


def _operation(tokens: list[Token], sanitized: str) -> str:
    for token in tokens:
        if token.kind in _SKIPPED_BEFORE_OPERATION or token.text == '(':
            continue
        if token.kind is TokenKind.IDENTIFIER:
            return token.text.upper()
        break
    return first_word(sanitized)


def tokenize(source: str) -> list[Token]:
    """Split SQL-like text into tokens. Concatenating the token texts gives back `source`."""
    return _SqlTokenizer(source).tokenize()


def _is_identifier_char(ch: str) -> bool:
    return ch.isalnum() or ch in '_$'


class _SqlTokenizer:
    def __init__(self, source: str) -> None:
        self._source = source
        self._pos = 0
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        while self._pos < len(self._source):
            self._read_next()
        return self._tokens

    def _peek(self, offset: int = 0) -> str:
        pos = self._pos + offset
        if 0 <= pos < len(self._source):
            return self._source[pos]
        return ''

    def _starts_with(self, text: str) -> bool:
        return self._source.startswith(text, self._pos)

    def _emit(self, kind: TokenKind, end: int) -> None:
        self._tokens.append(Token(kind, self._source[self._pos : end]))
        self._pos = end

    def _read_next(self) -> None:
        ch = self._peek()

        if ch.isspace():
            end = self._pos
            while end < len(self._source) and self._source[end].isspace():
                end += 1
            self._emit(TokenKind.WHITESPACE, end)
        elif self._starts_with('--'):
            end = self._source.find('\n', self._pos)
            self._emit(TokenKind.COMMENT, len(self._source) if end == -1 else end)
        elif self._starts_with('/*'):
            end = self._source.find('*/', self._pos + 2)
            self._emit(TokenKind.COMMENT, len(self._source) if end == -1 else end + 2)
        elif ch == "'":
            self._read_quoted("'", TokenKind.LITERAL)
        elif ch in '"`':
            self._read_quoted(ch, TokenKind.QUOTED_IDENTIFIER)
        elif ch == '{':
            self._read_brace()
        elif ch.isdecimal() or (ch == '.' and self._peek(1).isdecimal()):
            self._read_number()
        elif _is_identifier_char(ch):
            self._read_identifier()
        else:
            self._emit(TokenKind.PUNCTUATION, self._pos + 1)

    def _read_quoted(self, quote: str, kind: TokenKind) -> None:
        """Read a quoted run, a doubled quote inside it stands for the quote character itself."""
        end = self._pos + 1
        while True:
            end = self._source.find(quote, end)
            if end == -1:
                # Unterminated, give up on the rest of the statement.
                self._emit(TokenKind.UNPARSED, len(self._source))
                return
            if self._source.startswith(quote, end + 1):
                end += 2
                continue
            self._emit(kind, end + 1)
            return

    def _read_brace(self) -> None:
        match = PARAMETER_SPAN_RE.match(self._source, self._pos)
        if match:
            self._emit(TokenKind.PARAMETER_SPAN, match.end())
        else:
            self._emit(TokenKind.PUNCTUATION, self._pos + 1)

    def _read_number(self) -> None:
        if _is_identifier_char(self._peek(-1)):
            # e.g. the `1` in `$1` or the `.` in `t.col`, never a literal on its own
            if self._peek() == '.':
                self._emit(TokenKind.PUNCTUATION, self._pos + 1)
            else:
                self._read_identifier()
            return
        match = NUMBER_RE.match(self._source, self._pos)
        if match is None:
            self._emit(TokenKind.PUNCTUATION, self._pos + 1)
            return
        end = match.end()
        if end < len(self._source) and _is_identifier_char(self._source[end]):
            # A name that happens to start with digits, e.g. `1st_column`
            self._read_identifier()
            return
        self._emit(TokenKind.LITERAL, end)

    def _read_identifier(self) -> None:
        end = self._pos
        while end < len(self._source) and _is_identifier_char(self._source[end]):
            end += 1
        self._emit(TokenKind.IDENTIFIER, max(end, self._pos + 1))
