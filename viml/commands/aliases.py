"""
  User defined commands

:command stores an Alias; invoking it expands the replacement text and runs
the result through the dispatcher with one less level of alias depth. An
alias chain that keeps expanding is stopped with
AliasRecursionLimitExceeded once the depth reaches zero.

Replacement escapes:
- <args>    the argument as typed
- <q-args>  the argument as one String literal
- <f-args>  the white space separated words as String literals, comma separated
- <bang>    "!" when invoked with a bang
- <line1>, <line2>, <count>, <range>  from the range
- <lt>      a literal "<"
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
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
from viml.errors import (
    AliasRecursionLimitExceeded,
    MissingArgument,
    NoArgumentAllowed,
    NoRangeAllowed,
    UnknownCommand,
    VimError,
)
from viml.host.editor import VimCaret
from viml.types.coercion import quote_string
from viml.types.context import ExecutionContext

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)

NARGS = ("0", "1", "*", "?", "+")
RESERVED_NAMES = frozenset({"X", "Next", "Print"})
ALIAS_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9]*")
ESCAPE_RE = re.compile(r"<(args|q-args|f-args|bang|line1|line2|count|range|lt)>", re.IGNORECASE)
WORD_RE = re.compile(r"(?:\\.|[^\s\\])+")


@dataclass(frozen=True)
class Alias:
    name: str
    replacement: str
    nargs: str = "0"
    # None: no range, "%": whole file default, "": current line default
    range: str | None = None
    count: int | None = None
    bang: bool = False

    @property
    def takes_range(self) -> bool:
        return self.range is not None or self.count is not None


def find_alias(name: str, aliases: dict[str, Alias]) -> Alias:
    """Alias called `name`, or the single alias `name` abbreviates."""
    alias = aliases.get(name)
    if alias is not None:
        return alias
    matches = [alias for key, alias in aliases.items() if key.startswith(name)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise VimError(f"Ambiguous use of user-defined command: {name}", "E464")
    raise UnknownCommand(f"Not an editor command: {name}")


def f_args(argument: str) -> str:
    words = [re.sub(r"\\(.)", r"\1", word) for word in WORD_RE.findall(argument)]
    return ", ".join(quote_string(word) for word in words)


def q_args(argument: str) -> str:
    escaped = argument.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_attributes(text: str) -> tuple[dict[str, str | None], str]:
    """Leading `-name[=value]` attributes of :command, and what follows them."""
    attributes: dict[str, str | None] = {}
    text = text.lstrip()
    while text.startswith("-"):
        token, _, text = text.partition(" ")
        name, eq, value = token[1:].partition("=")
        attributes[name] = value if eq else None
        text = text.lstrip()
    return attributes, text


def make_alias(name: str, replacement: str, attributes: dict[str, str | None]) -> Alias:
    nargs = "0"
    range_default: str | None = None
    count: int | None = None
    bang = False
    for key, value in attributes.items():
        match key:
            case "nargs":
                if value not in NARGS:
                    raise VimError("Invalid number of arguments", "E176")
                nargs = value
            case "range":
                if value is None:
                    range_default = ""
                elif value == "%":
                    range_default = "%"
                elif value.isdigit():
                    count = int(value)
                else:
                    raise VimError(f"Invalid range: {value}", "E178")
            case "count":
                if value is not None and not value.isdigit():
                    raise VimError(f"Invalid count: {value}", "E179")
                count = int(value) if value else 0
            case "bang":
                bang = True
            case "bar" | "register" | "buffer" | "complete" | "keepscript":
                pass
            case _:
                raise VimError(f"Invalid attribute: -{key}", "E181")
    return Alias(name, replacement, nargs, range_default, count, bang)


class CommandCommand(Command):
    """:com[mand][!] [{attr}...] {cmd} {rep}"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)
    accepts_bang = True

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        attributes, rest = parse_attributes(self.argument)
        name, _, replacement = rest.partition(" ")
        replacement = replacement.strip()
        if not replacement:
            self._list(vim, name)
            return ExecutionResult.SUCCESS
        if not ALIAS_NAME_RE.fullmatch(name) or not name[0].isupper():
            raise VimError("User defined commands must start with an uppercase letter", "E183")
        if name in RESERVED_NAMES:
            raise VimError("Reserved name, cannot be used for user defined command", "E841")
        if name in vim.aliases and not self.bang:
            raise VimError(f"Command already exists: add ! to replace it: {name}", "E174")
        vim.aliases[name] = make_alias(name, replacement, attributes)
        logger.debug("defined command %s as %r", name, replacement)
        return ExecutionResult.SUCCESS

    @staticmethod
    def _list(vim: Interpreter, prefix: str) -> None:
        with StringIO() as buffer:
            buffer.write("Name        Args       Definition")
            for name in sorted(vim.aliases, key=lambda n: (n.lower(), n.swapcase())):
                if name.startswith(prefix):
                    alias = vim.aliases[name]
                    buffer.write(f"\n{name:<12}{alias.nargs:<11}{alias.replacement}")
            vim.host.messages.output(buffer.getvalue())


class DelcommandCommand(Command):
    """:delc[ommand] {cmd}"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_REQUIRED, Access.READ_ONLY)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        name = self.argument.strip()
        if vim.aliases.pop(name, None) is None:
            raise VimError(f"No such user-defined command: {name}", "E184")
        return ExecutionResult.SUCCESS


class UserCommand(Command):
    """Invocation of a command defined with :command."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.SELF_SYNCHRONIZED)
    accepts_bang = True

    def _check(self, alias: Alias) -> None:
        argument = self.argument.strip()
        if self.range and not alias.takes_range:
            raise NoRangeAllowed("No range allowed")
        if self.bang and not alias.bang:
            raise VimError("No ! allowed", "E477")
        match alias.nargs:
            case "0" if argument:
                raise NoArgumentAllowed(f"Trailing characters: {argument}")
            case "1" | "+" if not argument:
                raise MissingArgument("Argument required")
            case "?" if len(WORD_RE.findall(argument)) > 1:
                raise NoArgumentAllowed(f"Trailing characters: {argument}")

    def expand(self, alias: Alias, vim: Interpreter, caret: VimCaret) -> str:
        argument = self.argument.strip()
        line1 = line2 = caret.line + 1
        count = alias.count or 0
        if self.range:
            line_range = self.line_range(vim, caret)
            line1, line2 = line_range.start_line1, line_range.end_line1
            count = line2
        elif alias.range == "%":
            line1, line2 = 1, vim.host.editor.line_count()

        def replace(m: re.Match) -> str:
            match m.group(1).lower():
                case "args":
                    return argument
                case "q-args":
                    return q_args(argument)
                case "f-args":
                    return f_args(argument) if alias.nargs != "1" else quote_string(argument)
                case "bang":
                    return "!" if self.bang else ""
                case "line1":
                    return str(line1)
                case "line2":
                    return str(line2)
                case "count":
                    return str(count)
                case "range":
                    return str(self.range.size()) if self.range else "0"
                case "lt":
                    return "<"
            return m.group(0)

        return ESCAPE_RE.sub(replace, alias.replacement)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        alias = find_alias(self.name, vim.aliases)
        self._check(alias)
        if context.alias_depth <= 0:
            logger.warning("recursion detected, maximum alias depth reached")
            raise AliasRecursionLimitExceeded("recursion detected, maximum alias depth reached")
        text = self.expand(alias, vim, caret)
        if not text.strip():
            logger.warning("command alias %s is empty", alias.name)
            return ExecutionResult.ERROR
        nested = context.nested(alias_depth=context.alias_depth - 1, skip_history=True)
        return vim.dispatcher.run_text(text, nested)


COMMANDS = [
    ("com", "mand", CommandCommand),
    ("delc", "ommand", DelcommandCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
