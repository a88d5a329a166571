"""Table of Ex commands by their abbreviations.

Each command module exports `register(table)` adding `(required, optional,
class)` entries: `("d", "elete", DeleteLinesCommand)` accepts d, de, ...,
delete. Symbol commands (!, @, *, <, >) have no optional part.
"""

from __future__ import annotations

from functools import lru_cache

from viml.commands import aliases, execution, lines, options, output, substitute, variables
from viml.commands.command import Command


COMMAND_MODULES = (variables, output, execution, options, aliases, lines, substitute)


@lru_cache(maxsize=1)
def command_table() -> tuple[tuple[str, str, type[Command]], ...]:
    table: list = []
    for module in COMMAND_MODULES:
        module.register(table)
    return tuple(table)


@lru_cache(maxsize=512)
def find_command(name: str) -> tuple[str, type[Command]] | None:
    """Full name and class of the command `name` abbreviates, or None."""
    for required, optional, command in command_table():
        full = required + optional
        if name.startswith(required) and full.startswith(name):
            return full, command
    return None
