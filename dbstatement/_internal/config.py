from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..exceptions import DbStatementConfigError
from .config_params import CONFIG_PARAMS, ParamManager
from .constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_INPUT_LENGTH, DEFAULT_MAX_LENGTH


@dataclass(frozen=True)
class StatementCaptureOptions:
    """Options controlling how statements are captured and redacted.

    These are read once, when an instrumenter is created, and then passed to every redaction call.
    Use [`StatementCaptureOptions.load`][dbstatement.StatementCaptureOptions.load] to also take
    environment variables and `pyproject.toml` into account.
    """

    capture_statement: bool = True
    """Whether to set the sanitized statement as a span attribute at all."""

    max_length: int = DEFAULT_MAX_LENGTH
    """Maximum length of the captured statement. Longer statements are truncated in the middle."""

    max_input_length: int = DEFAULT_MAX_INPUT_LENGTH
    """Maximum number of characters of a statement or request body that redaction will look at."""

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum nesting depth of a JSON request body. Deeper bodies are not captured."""

    keep_invalid_json: bool = False
    """Whether a request body that can't be parsed as JSON is captured unredacted.

    Off by default, because such a body may contain exactly the data redaction exists to hide.
    """

    default_namespace: str | None = None
    """The database name used when the caller doesn't know which database a statement targets."""

    def __post_init__(self):
        for name in ('max_length', 'max_input_length', 'max_depth'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise DbStatementConfigError(f'Expected {name} to be a positive integer, got {value!r}')

    @classmethod
    def load(
        cls,
        *,
        config_dir: Path | str | None = None,
        capture_statement: bool | None = None,
        max_length: int | None = None,
        max_input_length: int | None = None,
        max_depth: int | None = None,
        keep_invalid_json: bool | None = None,
        default_namespace: str | None = None,
    ) -> StatementCaptureOptions:
        """Build options from arguments, falling back to environment variables, then `pyproject.toml`.

        Arguments that are `None` are looked up in the `DBSTATEMENT_*` environment variables, e.g.
        `DBSTATEMENT_MAX_LENGTH`, then in the `[tool.dbstatement]` table of the `pyproject.toml`
        in `config_dir` (or `DBSTATEMENT_CONFIG_DIR`, or the working directory).

        Raises:
            DbStatementConfigError: If a value is invalid or the config file can't be read.
        """
        param_manager = ParamManager.create(Path(config_dir) if config_dir is not None else None)
        runtime = {
            'capture_statement': capture_statement,
            'max_length': max_length,
            'max_input_length': max_input_length,
            'max_depth': max_depth,
            'keep_invalid_json': keep_invalid_json,
            'default_namespace': default_namespace,
        }
        return cls(**{name: param_manager.load_param(name, runtime[name]) for name in CONFIG_PARAMS})


DEFAULT_OPTIONS = StatementCaptureOptions()
