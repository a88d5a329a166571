"""
  Command dispatcher

Every command line goes through `run_command`:
1. The range and argument are checked against the command's flags before
   anything runs; a RANGE_IS_COUNT command without a range counts from 1.
2. A visual selection is left unless the command keeps it (SAVE_VISUAL).
3. A WRITABLE command is refused on a read-only buffer.
4. The command runs once (SINGLE_EXECUTION) or once per caret, bottom-most
   first (FOR_EACH_CARET). The per-caret loop stops at the first caret that
   fails; what earlier carets changed stays changed.

`execute` is the entry point for one top-level statement: it reports a
failure to the host exactly once and records a successful command line in
the history.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    ExecutionResult,
    ExecutionShape,
    Flag,
    RangeFlag,
)
from viml.commands.registry import find_command
from viml.errors import (
    MissingArgument,
    MissingRange,
    NoArgumentAllowed,
    NoRangeAllowed,
    VimError,
)
from viml.host.registers import SelectionType
from viml.reader.command_parser import parse_command
from viml.reader.script_parser import parse_script
from viml.statements.nodes import Statement
from viml.statements.signals import FinishSignal
from viml.types.context import ExecutionContext
from viml.types.values import VimString

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)


class CommandDispatcher:
    __slots__ = ("vim",)

    def __init__(self, vim: Interpreter):
        self.vim = vim

    # -------------------------------
    # Top level
    # -------------------------------
    def execute(self, text: str, context: ExecutionContext) -> ExecutionResult:
        """Run a command line typed by the user or sent by the host."""
        try:
            result = self.run_text(text, context)
        except VimError as error:
            result = self.report(error)
        except FinishSignal:
            result = ExecutionResult.SUCCESS
        return self.finish(text, result, context)

    def execute_statement(self, statement: Statement, context: ExecutionContext) -> ExecutionResult:
        """Run one top-level statement of a sourced script."""
        try:
            result = self.vim.executor.execute(statement, context)
        except VimError as error:
            result = self.report(error)
        if result is ExecutionResult.ERROR:
            self.vim.host.messages.indicate_error()
        return result

    def report(self, error: VimError) -> ExecutionResult:
        message = str(error)
        logger.debug("command failed: %s", message)
        self.vim.variables.set_vim_variable("errmsg", VimString(message))
        self.vim.host.messages.show_message(message, keep=True)
        return ExecutionResult.ERROR

    def finish(self, text: str, result: ExecutionResult, context: ExecutionContext) -> ExecutionResult:
        host = self.vim.host
        if result is ExecutionResult.ERROR:
            host.messages.indicate_error()
        elif not context.skip_history:
            host.history.add_entry("cmd", text)
            host.registers.store_text(":", text, SelectionType.CHARACTER_WISE)
        return result

    # -------------------------------
    # Nested execution
    # -------------------------------
    def run_text(self, text: str, context: ExecutionContext) -> ExecutionResult:
        """Parse `text` as script lines and run them; errors propagate."""
        return self.vim.executor.execute_block(parse_script(text), context)

    def run_line(self, text: str, context: ExecutionContext) -> ExecutionResult:
        command = parse_command(text)
        if command is None:
            return ExecutionResult.SUCCESS
        return self.run_command(command, context)

    def run_command(self, command: Command, context: ExecutionContext) -> ExecutionResult:
        try:
            command = self.validate(command)
            editor = self.vim.host.editor
            flags = command.flags
            if editor.in_visual_mode() and Flag.SAVE_VISUAL not in flags.flags:
                editor.exit_visual_mode()
            if flags.access is Access.WRITABLE and not editor.is_writable():
                logger.info("refusing %r on a read-only buffer", command)
                raise VimError("Cannot make changes, 'modifiable' is off", "E21")
            logger.debug("running %r", command)
            match command.shape:
                case ExecutionShape.SINGLE_EXECUTION:
                    return self._single(command, context)
                case ExecutionShape.FOR_EACH_CARET:
                    return self._for_each_caret(command, context)
        except VimError as error:
            # the innermost command names the error
            if error.command is None and command.name:
                error.command = command.name
            raise
        return ExecutionResult.SUCCESS

    @staticmethod
    def validate(command: Command) -> Command:
        """The command to run: checked against its flags, with a count default resolved."""
        flags = command.flags
        match flags.range:
            case RangeFlag.RANGE_FORBIDDEN if command.range:
                raise NoRangeAllowed("No range allowed")
            case RangeFlag.RANGE_REQUIRED if not command.range:
                raise MissingRange("Range required")
            case RangeFlag.RANGE_IS_COUNT if not command.range:
                command = command.with_range(command.range.with_default_line(1))
        argument = command.argument.strip()
        match flags.argument:
            case ArgumentFlag.ARGUMENT_FORBIDDEN if argument:
                raise NoArgumentAllowed(f"Trailing characters: {argument}")
            case ArgumentFlag.ARGUMENT_REQUIRED if not argument:
                raise MissingArgument("Argument required")
        return command

    def _single(self, command: Command, context: ExecutionContext) -> ExecutionResult:
        caret = self.vim.host.editor.primary_caret()
        return command.execute(self.vim, context.nested(current_line=caret.line + 1), caret)

    def _for_each_caret(self, command: Command, context: ExecutionContext) -> ExecutionResult:
        editor = self.vim.host.editor
        # :global moves the primary caret from line to line
        carets = [editor.primary_caret()] if context.in_global else editor.carets()
        for caret in carets:
            result = command.execute(self.vim, context.nested(current_line=caret.line + 1), caret)
            if result is not ExecutionResult.SUCCESS:
                logger.debug("%r failed at line %d, skipping the remaining carets", command, caret.line + 1)
                return result
        return ExecutionResult.SUCCESS

    # -------------------------------
    # Queries
    # -------------------------------
    def command_exists(self, name: str) -> int:
        """exists(':name'): 2 for a full command name, 1 for an abbreviation, 0 otherwise."""
        if name[:1].isupper():
            return 2 if name in self.vim.aliases else 0
        found = find_command(name)
        if found is None:
            return 0
        return 2 if found[0] == name else 1
