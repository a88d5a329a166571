"""Message commands: :echo, :echon, :echomsg, :echoerr and :history."""

from __future__ import annotations

import re
from io import StringIO
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    CommandHandlerFlags,
    ExecutionResult,
    RangeFlag,
)
from viml.errors import NoArgumentAllowed, VimError
from viml.evaluation.evaluator import evaluate
from viml.host.editor import VimCaret
from viml.reader.parser import parse_expression_list
from viml.reader.script_parser import find_abbreviation
from viml.types.coercion import to_output_string
from viml.types.context import ExecutionContext

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


ECHO_FLAGS = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)

HISTORY_ARGUMENT_RE = re.compile(r"(?P<name>[a-z]*|[:/?=@>])\s*(?P<first>-?\d*)\s*(?:,\s*(?P<last>-?\d*))?\s*")
HISTORY_NAMES = [("c", "md"), ("s", "earch"), ("e", "xpr"), ("i", "nput"), ("a", "ll")]
HISTORY_SYMBOLS = {":": "cmd", "/": "search", "?": "search", "=": "expr", "@": "input"}


def evaluate_arguments(command: Command, vim: Interpreter, context: ExecutionContext) -> list[str]:
    return [
        to_output_string(evaluate(expr, vim, context))
        for expr in parse_expression_list(command.argument)
    ]


class EchoCommand(Command):
    """:echo {expr1} ..: values separated by a space."""

    __slots__ = ()
    flags = ECHO_FLAGS

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        vim.host.messages.output(" ".join(evaluate_arguments(self, vim, context)))
        return ExecutionResult.SUCCESS


class EchonCommand(Command):
    """:echon {expr1} ..: like :echo without separators."""

    __slots__ = ()
    flags = ECHO_FLAGS

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        vim.host.messages.output("".join(evaluate_arguments(self, vim, context)))
        return ExecutionResult.SUCCESS


class EchomsgCommand(Command):
    """:echomsg {expr1} ..: shown and kept in the message history."""

    __slots__ = ()
    flags = ECHO_FLAGS

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        vim.host.messages.show_message(" ".join(evaluate_arguments(self, vim, context)), keep=True)
        return ExecutionResult.SUCCESS


class EchoerrCommand(Command):
    """:echoerr {expr1} ..: raises the message as an error."""

    __slots__ = ()
    flags = ECHO_FLAGS

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        raise VimError(" ".join(evaluate_arguments(self, vim, context)))


class HistoryCommand(Command):
    """:history [{name}] [{first}][, [{last}]]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)

    def _categories(self, name: str) -> tuple[str, ...]:
        if not name:
            return ("cmd",)
        full = HISTORY_SYMBOLS.get(name) or find_abbreviation(name, HISTORY_NAMES)
        if full is None:
            raise NoArgumentAllowed(f"Trailing characters: {self.argument}")
        if full == "all":
            return ("cmd", "search", "expr", "input")
        return (full,)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        m = HISTORY_ARGUMENT_RE.fullmatch(self.argument.strip())
        if m is None:
            raise NoArgumentAllowed(f"Trailing characters: {self.argument}")
        first = int(m.group("first")) if m.group("first") else 0
        last = int(m.group("last")) if m.group("last") else (0 if m.group("last") is not None else first)
        with StringIO() as buffer:
            for category in self._categories(m.group("name")):
                buffer.write(f"      #  {category} history\n")
                for entry in vim.host.history.get_entries(category, first, last):
                    buffer.write(f"{entry.number:>6}  {entry.text}\n")
            vim.host.messages.output(buffer.getvalue().rstrip("\n"))
        return ExecutionResult.SUCCESS


COMMANDS = [
    ("ec", "ho", EchoCommand),
    ("echon", "", EchonCommand),
    ("echom", "sg", EchomsgCommand),
    ("echoe", "rr", EchoerrCommand),
    ("his", "tory", HistoryCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
