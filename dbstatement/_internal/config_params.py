from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from typing_extensions import get_args, get_origin

from ..exceptions import DbStatementConfigError
from .constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_INPUT_LENGTH, DEFAULT_MAX_LENGTH
from .utils import read_toml_file

CONFIG_DIR_ENV_VAR = 'DBSTATEMENT_CONFIG_DIR'
CONFIG_TABLE = 'dbstatement'


@dataclass(frozen=True)
class ConfigParam:
    """One capture option, settable from code, the environment or `[tool.dbstatement]`."""

    env_var: str
    default: Any = None
    tp: Any = str


# fmt: off
CAPTURE_STATEMENT = ConfigParam(env_var='DBSTATEMENT_CAPTURE_STATEMENT', default=True, tp=bool)
"""Whether the sanitized statement is put on spans at all."""
MAX_LENGTH = ConfigParam(env_var='DBSTATEMENT_MAX_LENGTH', default=DEFAULT_MAX_LENGTH, tp=int)
"""Longer statements are truncated in the middle."""
MAX_INPUT_LENGTH = ConfigParam(env_var='DBSTATEMENT_MAX_INPUT_LENGTH', default=DEFAULT_MAX_INPUT_LENGTH, tp=int)
"""How many characters of a statement or request body redaction looks at."""
MAX_DEPTH = ConfigParam(env_var='DBSTATEMENT_MAX_DEPTH', default=DEFAULT_MAX_DEPTH, tp=int)
"""Deepest JSON nesting that is still redacted."""
KEEP_INVALID_JSON = ConfigParam(env_var='DBSTATEMENT_KEEP_INVALID_JSON', default=False, tp=bool)
"""Capture request bodies that aren't valid JSON as they are, instead of dropping them."""
DEFAULT_NAMESPACE = ConfigParam(env_var='DBSTATEMENT_DEFAULT_NAMESPACE', default=None, tp=Optional[str])
"""Database name for span names when the caller doesn't pass one."""
# fmt: on

CONFIG_PARAMS: Mapping[str, ConfigParam] = {
    'capture_statement': CAPTURE_STATEMENT,
    'max_length': MAX_LENGTH,
    'max_input_length': MAX_INPUT_LENGTH,
    'max_depth': MAX_DEPTH,
    'keep_invalid_json': KEEP_INVALID_JSON,
    'default_namespace': DEFAULT_NAMESPACE,
}


@dataclass
class ParamManager:
    """Resolves capture options from their sources."""

    file_config: dict[str, Any]
    """The `[tool.dbstatement]` table of `pyproject.toml`, empty if there is none."""

    @classmethod
    def create(cls, config_dir: Path | None = None) -> ParamManager:
        config_dir = Path(config_dir or os.getenv(CONFIG_DIR_ENV_VAR) or '.')
        return cls(file_config=_read_config_table(config_dir / 'pyproject.toml'))

    def load_param(self, name: str, runtime: Any = None) -> Any:
        """Resolve the option `name`.

        A value passed in code wins, then the option's environment variable, then `pyproject.toml`,
        then the default. An empty environment variable counts as unset.

        Raises:
            DbStatementConfigError: If the value found can't be converted to the option's type.
        """
        if runtime is not None:
            return runtime

        param = CONFIG_PARAMS[name]
        from_env = os.getenv(param.env_var)
        if from_env:
            return _convert(from_env, name, param.tp)
        from_file = self.file_config.get(name)
        if from_file is not None:
            return _convert(from_file, name, param.tp)
        return param.default


def _convert(value: Any, name: str, tp: Any) -> Any:
    if get_origin(tp) is Union:
        tp = next(arg for arg in get_args(tp) if arg is not type(None))
    converter: Callable[[Any, str], Any] | None = _CONVERTERS.get(tp)
    if converter is None:  # pragma: no cover
        raise RuntimeError(f'No converter for {tp}')
    return converter(value, name)


def _to_str(value: Any, name: str) -> str:
    return str(value)


def _to_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in ('1', 'true', 't'):
        return True
    if normalized in ('0', 'false', 'f'):
        return False
    raise DbStatementConfigError(f'Expected {name} to be a boolean, got {value!r}')


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise DbStatementConfigError(f'Expected {name} to be an integer, got {value!r}')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise DbStatementConfigError(f'Expected {name} to be an integer, got {value!r}') from None
    if number <= 0:
        raise DbStatementConfigError(f'Expected {name} to be positive, got {value!r}')
    return number


_CONVERTERS: dict[Any, Callable[[Any, str], Any]] = {str: _to_str, bool: _to_bool, int: _to_int}


def _read_config_table(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        return read_toml_file(path).get('tool', {}).get(CONFIG_TABLE, {})
    except Exception as exc:
        raise DbStatementConfigError(f'Invalid config file: {path}') from exc
