"""
  Commands that run other code

- :call evaluates a function call, once per line of its range unless the
  function was defined with `range`.
- :execute, :@ and :source run text through the dispatcher without adding
  it to the command history.
- :! runs a shell command, or filters the lines of its range through one.
- :global marks the matching lines first and then runs its command on each
  mark that survives, so commands that delete lines are safe.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    CommandHandlerFlags,
    ExecutionResult,
    RangeFlag,
)
from viml.errors import ExternalProcessTerminated, VimError
from viml.evaluation.apply import call_named, find_function
from viml.evaluation.evaluator import evaluate
from viml.evaluation.regex import compile_pattern
from viml.host.editor import VimCaret
from viml.reader.expressions import CallExpression, FunctionCall, MethodCall
from viml.reader.parser import parse_expression, parse_expression_list
from viml.reader.ranges import LineRange
from viml.statements.signals import FinishSignal
from viml.types.coercion import to_string
from viml.types.context import ExecutionContext
from viml.types.function import FunctionDeclaration
from viml.types.values import VimDictionary

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)

GLOBAL_MARK_PREFIX = "\x00global:"


def split_pattern(text: str) -> tuple[str, str, bool]:
    """Split `/pattern/rest` at the closing delimiter: (pattern, rest, closed)."""
    delimiter = text[0]
    i = 1
    out: list[str] = []
    while i < len(text):
        c = text[i]
        if c == "\\" and i + 1 < len(text):
            if text[i + 1] == delimiter:
                out.append(delimiter)
            else:
                out.append(text[i:i + 2])
            i += 2
            continue
        if c == delimiter:
            return "".join(out), text[i + 1:], True
        out.append(c)
        i += 1
    return "".join(out), "", False


def check_delimiter(text: str) -> None:
    if not text or text[0].isalnum() or text[0] in '\\"| ':
        raise VimError("Regular expressions can't be delimited by letters", "E146")


class CallCommand(Command):
    """:[range]call {name}([arguments])"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_REQUIRED, Access.SELF_SYNCHRONIZED)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        expr = parse_expression(self.argument)
        if not isinstance(expr, (FunctionCall, CallExpression, MethodCall)):
            raise VimError(f"Function name required: {self.argument}", "E129")
        if not self.range:
            evaluate(expr, vim, context)
            return ExecutionResult.SUCCESS

        line_range = self.line_range(vim, caret)
        if isinstance(expr, FunctionCall):
            handler = find_function(expr.name, vim)
            if isinstance(handler, FunctionDeclaration) and handler.is_range:
                caret.move_to(line_range.start_line)
                args = [evaluate(arg, vim, context) for arg in expr.args]
                call_named(expr.name, args, vim, context,
                           line_range=(line_range.start_line1, line_range.end_line1))
                return ExecutionResult.SUCCESS
        for line in range(line_range.start_line, line_range.end_line + 1):
            caret.move_to(line)
            evaluate(expr, vim, context.nested(current_line=line + 1))
        return ExecutionResult.SUCCESS


class ExecuteCommand(Command):
    """:execute {expr1} ..: run the concatenated values as a command line."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.SELF_SYNCHRONIZED)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        values = [to_string(evaluate(expr, vim, context)) for expr in parse_expression_list(self.argument)]
        text = " ".join(values)
        if not text.strip():
            return ExecutionResult.SUCCESS
        return vim.dispatcher.run_text(text, context.nested(skip_history=True))


class SourceCommand(Command):
    """:source {file}: run a script file with its own s: scope."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_REQUIRED, Access.SELF_SYNCHRONIZED)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        path = os.path.expanduser(os.path.expandvars(self.argument.strip()))
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError:
            raise VimError(f"Can't open file {self.argument.strip()}", "E484") from None
        logger.debug("sourcing %s", path)
        try:
            return vim.dispatcher.run_text(text, context.nested(skip_history=True, script=VimDictionary()))
        except FinishSignal:
            return ExecutionResult.SUCCESS


class RegisterCommand(Command):
    """:[addr]@{register} and :[addr]*{register}: run a register as Ex commands."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.SELF_SYNCHRONIZED)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        name = self.argument.strip()[:1] or "@"
        if name == "@":
            if vim.last_register is None:
                raise VimError("No previously used register", "E748")
            name = vim.last_register
        if self.range:
            caret.move_to(self.line_range(vim, caret).end_line)
        register = vim.host.registers.get_register(name)
        if register is None or not register.text:
            return ExecutionResult.ERROR
        vim.last_register = name
        return vim.dispatcher.run_text(register.text, context.nested(skip_history=True))


def run_shell(vim: Interpreter, shell: str, command: str, input: str | None = None) -> str:
    try:
        return vim.host.shell.run(shell, command, input)
    except KeyboardInterrupt:
        logger.info("%r interrupted", command)
        raise ExternalProcessTerminated("Command terminated") from None


class ShellCommand(Command):
    """:!{cmd} runs a shell command, :{range}!{filter} filters lines, :!! repeats."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_REQUIRED, Access.SELF_SYNCHRONIZED)

    def _command_text(self, vim: Interpreter) -> str | None:
        """The argument with unescaped `!` replaced by the previous command."""
        out: list[str] = []
        text = self.argument
        i = 0
        while i < len(text):
            c = text[i]
            if c == "\\" and i + 1 < len(text) and text[i + 1] == "!":
                out.append("!")
                i += 2
                continue
            if c == "!":
                if vim.last_shell_command is None:
                    return None
                out.append(vim.last_shell_command)
            else:
                out.append(c)
            i += 1
        return "".join(out)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        command = self._command_text(vim)
        if command is None:
            vim.host.messages.show_message("E34: No previous command", keep=True)
            return ExecutionResult.ERROR
        vim.last_shell_command = command
        shell = str(vim.options.get("shell"))
        editor = vim.host.editor
        if not self.range:
            output = run_shell(vim, shell, command)
            vim.host.messages.output(output.rstrip("\n"))
            return ExecutionResult.SUCCESS
        if not editor.is_writable():
            logger.info("buffer is read-only, not filtering through %r", command)
            return ExecutionResult.ERROR
        line_range = self.line_range(vim, caret)
        return self._filter(vim, shell, command, line_range, caret)

    @staticmethod
    def _filter(vim: Interpreter, shell: str, command: str, line_range: LineRange,
                caret: VimCaret) -> ExecutionResult:
        editor = vim.host.editor
        lines = [editor.line_text(i) for i in range(line_range.start_line, line_range.end_line + 1)]
        output = run_shell(vim, shell, command, "\n".join(lines) + "\n")
        replacement = output.split("\n")
        if replacement and replacement[-1] == "":
            replacement.pop()
        editor.replace_lines(line_range.start_line, line_range.end_line + 1, replacement)
        caret.move_to(min(line_range.start_line, editor.line_count() - 1))
        return ExecutionResult.SUCCESS


class GlobalCommand(Command):
    """:[range]g[lobal][!]/{pattern}/[cmd] and :[range]v[global]/{pattern}/[cmd]"""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_REQUIRED, Access.SELF_SYNCHRONIZED)
    accepts_bang = True

    @property
    def inverted(self) -> bool:
        return self.bang or self.name.startswith("v")

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        if context.in_global:
            raise VimError("Cannot do :global recursive", "E147")
        text = self.argument.lstrip()
        check_delimiter(text)
        pattern_text, command, _ = split_pattern(text)
        if not pattern_text:
            if vim.last_search_pattern is None:
                raise VimError("No previous regular expression", "E35")
            pattern_text = vim.last_search_pattern
        vim.last_search_pattern = pattern_text
        pattern = compile_pattern(pattern_text, vim.options.ignorecase, bool(vim.options.get("smartcase")))

        editor = vim.host.editor
        if self.range:
            line_range = self.line_range(vim, caret)
        else:
            line_range = LineRange(0, editor.line_count() - 1)
        marks: list[str] = []
        for line in range(line_range.start_line, line_range.end_line + 1):
            if bool(pattern.search(editor.line_text(line))) != self.inverted:
                name = f"{GLOBAL_MARK_PREFIX}{line}"
                editor.set_mark(name, line)
                marks.append(name)
        if not marks:
            if self.inverted:
                vim.host.messages.show_message(f"Pattern found in every line: {pattern_text}")
            else:
                vim.host.messages.show_message(f"Pattern not found: {pattern_text}")
            return ExecutionResult.SUCCESS

        command = command.strip() or "p"
        nested = context.nested(in_global=True, skip_history=True)
        result = ExecutionResult.SUCCESS
        try:
            for name in marks:
                line = editor.get_mark(name)
                if line is None:
                    # deleted by an earlier command
                    continue
                editor.remove_mark(name)
                caret.move_to(line)
                if vim.dispatcher.run_text(command, nested.nested(current_line=line + 1)) is ExecutionResult.ERROR:
                    result = ExecutionResult.ERROR
        finally:
            for name in marks:
                editor.remove_mark(name)
        return result


COMMANDS = [
    ("cal", "l", CallCommand),
    ("exe", "cute", ExecuteCommand),
    ("so", "urce", SourceCommand),
    ("@", "", RegisterCommand),
    ("*", "", RegisterCommand),
    ("!", "", ShellCommand),
    ("g", "lobal", GlobalCommand),
    ("v", "global", GlobalCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
