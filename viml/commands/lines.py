"""Line commands: goto, :print, :delete, :yank, :put, :>, :<, :join, :copy and :move."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    CommandHandlerFlags,
    ExecutionResult,
    ExecutionShape,
    RangeFlag,
)
from viml.errors import InvalidArgument, InvalidRange, NoArgumentAllowed, VimError
from viml.host.editor import VimCaret
from viml.host.registers import SelectionType
from viml.reader.ranges import LineRange, Range, parse_range
from viml.types.context import ExecutionContext

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


REGISTER_COUNT_RE = re.compile(r"(?P<register>[a-zA-Z\"*+_-])?\s*(?P<count>\d+)?")


def resolve_line(vim: Interpreter, range: Range, caret: VimCaret) -> int:
    """0-based line of the last address; -1 for address 0, which is above the first line."""
    cursor = caret.line
    line = cursor
    for address in range.addresses:
        line = address.resolve(vim.host.editor, cursor, bool(vim.options.get("wrapscan")), vim.options.ignorecase)
        if address.move_cursor:
            cursor = line
    if line < -1:
        raise InvalidRange("Invalid range")
    return line


def register_and_count(argument: str) -> tuple[str | None, int | None]:
    m = REGISTER_COUNT_RE.fullmatch(argument.strip())
    if m is None:
        raise NoArgumentAllowed(f"Trailing characters: {argument.strip()}")
    count = int(m.group("count")) if m.group("count") else None
    if count == 0:
        raise VimError(f"Positive count required: {argument.strip()}", "E939")
    return m.group("register"), count


def counted_range(command: Command, vim: Interpreter, caret: VimCaret, count: int | None) -> LineRange:
    """The command's range, or `count` lines starting at its last line."""
    line_range = command.line_range(vim, caret)
    if count is None:
        return line_range
    last = min(line_range.end_line + count - 1, vim.host.editor.line_count() - 1)
    return LineRange(line_range.end_line, last)


def lines_of(vim: Interpreter, line_range: LineRange) -> list[str]:
    editor = vim.host.editor
    return [editor.line_text(i) for i in range(line_range.start_line, line_range.end_line + 1)]


def insert_lines(vim: Interpreter, after: int, lines: list[str]) -> None:
    """Insert `lines` below line `after`; -1 inserts above the first line."""
    vim.host.editor.replace_lines(after + 1, after + 1, lines)


class GotoLineCommand(Command):
    """:{range} with no command name moves the caret to the last line of the range."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_REQUIRED, ArgumentFlag.ARGUMENT_FORBIDDEN, Access.READ_ONLY)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        line = resolve_line(vim, self.range, caret)
        caret.move_to(max(0, min(line, vim.host.editor.line_count() - 1)))
        return ExecutionResult.SUCCESS


class GotoByteCommand(Command):
    """:[range]go[to] [count]: caret to byte offset count, 1-based."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_IS_COUNT, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        argument = self.argument.strip()
        if argument:
            if not argument.isdigit():
                raise InvalidArgument(f"Invalid argument: {argument}")
            offset = int(argument)
        else:
            offset = self.count(vim, caret)
        editor = vim.host.editor
        remaining = max(offset - 1, 0)
        for line in range(editor.line_count()):
            length = len(editor.line_text(line).encode()) + 1
            if remaining < length:
                caret.move_to(line, len(editor.line_text(line).encode()[:remaining].decode(errors="ignore")))
                return ExecutionResult.SUCCESS
            remaining -= length
        last = editor.line_count() - 1
        caret.move_to(last, len(editor.line_text(last)))
        return ExecutionResult.SUCCESS


class PrintCommand(Command):
    """:[range]p[rint] [count]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        _, count = register_and_count(self.argument)
        line_range = counted_range(self, vim, caret, count)
        vim.host.messages.output("\n".join(lines_of(vim, line_range)))
        caret.move_to(line_range.end_line)
        return ExecutionResult.SUCCESS


class DeleteLinesCommand(Command):
    """:[range]d[elete] [x] [count]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        register, count = register_and_count(self.argument)
        line_range = counted_range(self, vim, caret, count)
        text = "\n".join(lines_of(vim, line_range)) + "\n"
        if not vim.host.registers.store_text(register or '"', text, SelectionType.LINE_WISE):
            return ExecutionResult.ERROR
        editor = vim.host.editor
        editor.replace_lines(line_range.start_line, line_range.end_line + 1, [])
        caret.move_to(min(line_range.start_line, editor.line_count() - 1))
        return ExecutionResult.SUCCESS


class YankLinesCommand(Command):
    """:[range]y[ank] [x] [count]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        register, count = register_and_count(self.argument)
        line_range = counted_range(self, vim, caret, count)
        text = "\n".join(lines_of(vim, line_range)) + "\n"
        if not vim.host.registers.store_text(register or '"', text, SelectionType.LINE_WISE):
            return ExecutionResult.ERROR
        return ExecutionResult.SUCCESS


class PutLinesCommand(Command):
    """:[line]pu[t][!] [x]: register contents as lines below (above with !) the line."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET
    accepts_bang = True

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        name = self.argument.strip() or '"'
        if len(name) > 1:
            raise NoArgumentAllowed(f"Trailing characters: {name[1:]}")
        register = vim.host.registers.get_register(name)
        if register is None:
            raise VimError(f"Nothing in register {name}", "E353")
        text = register.text[:-1] if register.text.endswith("\n") else register.text
        lines = text.split("\n")

        line = resolve_line(vim, self.range, caret) if self.range else caret.line
        after = line - 1 if self.bang and line >= 0 else line
        insert_lines(vim, after, lines)
        caret.move_to(after + len(lines))
        return ExecutionResult.SUCCESS


class ShiftCommand(Command):
    """:[range]> [count] and :[range]< [count]; each repeated > or < shifts one more 'shiftwidth'."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        _, count = register_and_count(self.argument)
        line_range = counted_range(self, vim, caret, count)
        shiftwidth = int(vim.options.get("shiftwidth")) or int(vim.options.get("tabstop"))
        amount = len(self.name) * shiftwidth * (1 if self.name[0] == ">" else -1)
        lines = [self.shift(vim, line, amount) for line in lines_of(vim, line_range)]
        vim.host.editor.replace_lines(line_range.start_line, line_range.end_line + 1, lines)
        caret.move_to(line_range.end_line)
        return ExecutionResult.SUCCESS

    @staticmethod
    def shift(vim: Interpreter, line: str, amount: int) -> str:
        if not line.strip():
            return line
        tabstop = int(vim.options.get("tabstop")) or 8
        body = line.lstrip(" \t")
        width = 0
        for c in line[:len(line) - len(body)]:
            width = (width // tabstop + 1) * tabstop if c == "\t" else width + 1
        width = max(0, width + amount)
        if vim.options.get("expandtab"):
            return " " * width + body
        return "\t" * (width // tabstop) + " " * (width % tabstop) + body


class JoinLinesCommand(Command):
    """:[range]j[oin][!] [count]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET
    accepts_bang = True

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        _, count = register_and_count(self.argument)
        editor = vim.host.editor
        line_range = self.line_range(vim, caret)
        if count is not None:
            line_range = LineRange(line_range.end_line, line_range.end_line + count - 1)
        elif line_range.size == 1:
            line_range = LineRange(line_range.start_line, line_range.start_line + 1)
        line_range = LineRange(line_range.start_line, min(line_range.end_line, editor.line_count() - 1))
        if line_range.size < 2:
            return ExecutionResult.ERROR
        lines = lines_of(vim, line_range)
        joined = lines[0]
        for line in lines[1:]:
            joined = joined + line if self.bang else self.join_spaced(joined, line)
        editor.replace_lines(line_range.start_line, line_range.end_line + 1, [joined])
        caret.move_to(line_range.start_line)
        return ExecutionResult.SUCCESS

    @staticmethod
    def join_spaced(left: str, right: str) -> str:
        right = right.lstrip(" \t")
        if not right:
            return left
        if not left or left.endswith((" ", "\t")) or right.startswith(")"):
            return left + right
        return f"{left} {right}"


class CopyLinesCommand(Command):
    """:[range]co[py] {address} and :[range]t {address}"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_REQUIRED, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        line_range = self.line_range(vim, caret)
        target = destination(self, vim, caret)
        lines = lines_of(vim, line_range)
        insert_lines(vim, target, lines)
        caret.move_to(target + len(lines))
        return ExecutionResult.SUCCESS


class MoveLinesCommand(Command):
    """:[range]m[ove] {address}"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_REQUIRED, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        line_range = self.line_range(vim, caret)
        target = destination(self, vim, caret)
        if line_range.start_line <= target < line_range.end_line:
            raise VimError("Cannot move a range of lines into itself", "E134")
        lines = lines_of(vim, line_range)
        editor = vim.host.editor
        editor.replace_lines(line_range.start_line, line_range.end_line + 1, [])
        if target >= line_range.end_line:
            target -= line_range.size
        insert_lines(vim, target, lines)
        caret.move_to(target + len(lines))
        return ExecutionResult.SUCCESS


def destination(command: Command, vim: Interpreter, caret: VimCaret) -> int:
    """Target line of :copy and :move; -1 is above the first line."""
    target, i = parse_range(command.argument)
    if not target or command.argument[i:].strip():
        raise VimError(f"Invalid address: {command.argument.strip()}", "E14")
    line = resolve_line(vim, target, caret)
    if line >= vim.host.editor.line_count():
        raise InvalidRange("Invalid range")
    return line


COMMANDS = [
    ("go", "to", GotoByteCommand),
    ("p", "rint", PrintCommand),
    ("d", "elete", DeleteLinesCommand),
    ("y", "ank", YankLinesCommand),
    ("pu", "t", PutLinesCommand),
    (">", "", ShiftCommand),
    ("<", "", ShiftCommand),
    ("j", "oin", JoinLinesCommand),
    ("co", "py", CopyLinesCommand),
    ("t", "", CopyLinesCommand),
    ("m", "ove", MoveLinesCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
