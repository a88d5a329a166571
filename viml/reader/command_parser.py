"""Parsing of one Ex command line into a Command.

A command line is `[range][name][!][ ][argument]`. The name is a run of
letters, a run of `<` or `>`, or one of the symbol commands (`!`, `@`,
`*`, `&`). Names starting with an uppercase letter are user commands.
"""

from __future__ import annotations

import re

from viml.commands.aliases import UserCommand
from viml.commands.command import Command
from viml.commands.lines import GotoLineCommand
from viml.commands.registry import find_command
from viml.errors import UnknownCommand, VimError
from viml.reader.ranges import parse_range


COMMAND_NAME_RE = re.compile(r"[A-Z][A-Za-z0-9]*|[a-z]+|<+|>+|[!@*&]")


def parse_command(text: str) -> Command | None:
    """The Command for `text`, or None for an empty line."""
    range, i = parse_range(text)
    while i < len(text) and text[i] in " \t:":
        i += 1
    m = COMMAND_NAME_RE.match(text, i)
    if m is None:
        if text[i:].strip():
            raise UnknownCommand(f"Not an editor command: {text.strip()}")
        if not range:
            return None
        return GotoLineCommand(range, "", "", False, text)

    name = m.group()
    i = m.end()
    bang = False
    if name != "!" and i < len(text) and text[i] == "!":
        bang = True
        i += 1
    argument = text[i:].lstrip(" \t")

    if name[0].isupper():
        return UserCommand(range, name, argument, bang, text)
    # a run of < or > is found by its first character
    found = find_command(name if name.isalpha() else name[0])
    if found is None:
        raise UnknownCommand(f"Not an editor command: {text.strip()}")
    full, command = found
    if bang and not command.accepts_bang:
        raise VimError("No ! allowed", "E477")
    return command(range, full if name.isalpha() else name, argument, bang, text)
