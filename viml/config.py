from __future__ import annotations
import os


# Defaults
_DEFAULT_MAX_ALIAS_DEPTH = 100
_DEFAULT_MAX_FUNCTION_DEPTH = 100
_DEFAULT_HISTORY_SIZE = 50
_DEFAULT_SHELL = '/bin/sh'

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def int_from_env(var: str, default: int) -> int:
    raw = os.environ.get(var)
    if not raw or not raw.strip().lstrip('-').isdigit():
        return default
    return int(raw)


def bool_from_env(var: str, default: bool) -> bool:
    raw = os.environ.get(var)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def get_max_alias_depth() -> int:
    return int_from_env('VIML_MAX_ALIAS_DEPTH', _DEFAULT_MAX_ALIAS_DEPTH)


def get_max_function_depth() -> int:
    return int_from_env('VIML_MAX_FUNC_DEPTH', _DEFAULT_MAX_FUNCTION_DEPTH)


def get_history_size() -> int:
    return int_from_env('VIML_HISTORY_SIZE', _DEFAULT_HISTORY_SIZE)


def get_shell() -> str:
    # fall back to the login shell before the POSIX default
    return os.environ.get('VIML_SHELL') or os.environ.get('SHELL') or _DEFAULT_SHELL


def get_ignorecase_default() -> bool:
    return bool_from_env('VIML_IGNORECASE', False)
