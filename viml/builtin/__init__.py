"""Builtin function table.

Each module defines its functions as `fn(args, vim, context)` plus a
`register(table)` that adds them with their arity.
"""

from __future__ import annotations

from viml.builtin import collection_builtin, list_builtin, value_builtin
from viml.types.function import BuiltinFunction


def builtin_functions() -> dict[str, BuiltinFunction]:
    table: dict[str, BuiltinFunction] = {}
    for module in (collection_builtin, list_builtin, value_builtin):
        module.register(table)
    return table
