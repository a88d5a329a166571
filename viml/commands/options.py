from __future__ import annotations

import re
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    CommandHandlerFlags,
    ExecutionResult,
    RangeFlag,
)
from viml.host.editor import VimCaret
from viml.types.context import ExecutionContext

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


# tokens are separated by unescaped white space
TOKEN_RE = re.compile(r"(?:\\.|[^\s\\])+")


def split_tokens(argument: str) -> list[str]:
    return [re.sub(r"\\(.)", r"\1", token) for token in TOKEN_RE.findall(argument)]


class SetCommand(Command):
    """:set, :set all, :set {option}..."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        options = vim.options
        tokens = split_tokens(self.argument)
        if not tokens or tokens == ["all"]:
            names = sorted({option.name for option in options.options.values()})
            if not tokens:
                # only options that differ from their default
                names = [name for name in names if options.values[name] != options.options[name].default]
            vim.host.messages.output("\n".join(options.format(name) for name in names))
            return ExecutionResult.SUCCESS

        shown: list[str] = []
        for token in tokens:
            text = options.apply_set_argument(token)
            if text is not None:
                shown.append(text)
        if shown:
            vim.host.messages.output("\n".join(shown))
        return ExecutionResult.SUCCESS


COMMANDS = [
    ("se", "t", SetCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
