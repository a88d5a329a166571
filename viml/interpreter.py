from __future__ import annotations

import re

from viml import EvaluatorFn
from viml.builtin import builtin_functions
from viml.commands.aliases import Alias
from viml.commands.command import ExecutionResult
from viml.commands.dispatcher import CommandDispatcher
from viml.commands.substitute import Substitution
from viml.errors import VimError
from viml.evaluation.evaluator import evaluate
from viml.host import Host
from viml.reader.parser import parse_expression
from viml.reader.script_parser import parse_script
from viml.statements.executor import StatementExecutor
from viml.statements.signals import FinishSignal
from viml.types.context import ExecutionContext
from viml.types.environment import VariableStore
from viml.types.function import FunctionTable
from viml.types.options import OptionStore
from viml.types.values import VimDictionary, VimValue


class Interpreter:
    """
    Vim script runtime bound to one Host.
    Holds the variables, options, functions and user commands that live
    across command lines; each command line runs with a fresh ExecutionContext.
    """
    def __init__(self, host: Host | None = None):
        self.host = host if host is not None else Host()
        self.variables = VariableStore()
        self.options = OptionStore()
        self.functions = FunctionTable()
        self.builtins = builtin_functions()
        self.aliases: dict[str, Alias] = {}

        self.eval_fn: EvaluatorFn = evaluate
        self.executor = StatementExecutor(self)
        self.dispatcher = CommandDispatcher(self)

        # state remembered between commands
        self.last_shell_command: str | None = None
        self.last_search_pattern: str | None = None
        self.last_substitute: Substitution | None = None
        self.last_register: str | None = None
        self.current_match: re.Match | None = None

    def execute(self, text: str, skip_history: bool = False) -> ExecutionResult:
        """Run one command line; failures are reported to the host, never raised."""
        return self.dispatcher.execute(text, ExecutionContext(skip_history=skip_history))

    def run_script(self, text: str) -> ExecutionResult:
        """Source a script: an error stops the statement it occurs in, not the script."""
        context = ExecutionContext(skip_history=True, script=VimDictionary())
        try:
            statements = parse_script(text)
        except VimError as error:
            result = self.dispatcher.report(error)
            self.host.messages.indicate_error()
            return result
        result = ExecutionResult.SUCCESS
        try:
            for statement in statements:
                if self.dispatcher.execute_statement(statement, context) is ExecutionResult.ERROR:
                    result = ExecutionResult.ERROR
        except FinishSignal:
            pass
        return result

    def evaluate(self, expression: str) -> VimValue:
        """Evaluate an expression at command level; errors are raised."""
        return self.eval_fn(parse_expression(expression), self, ExecutionContext())
