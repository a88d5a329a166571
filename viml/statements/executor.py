"""Statement executor.

Runs the statement tree built by the script reader:
- A VimError aborts the statement that raised it and propagates to the
  caller; a command that reports its own failure returns
  ExecutionResult.ERROR instead and the block carries on.
- :break, :continue, :return and :finish unwind with the signals of
  viml.statements.signals.
- :try catches VimErrors. The text matched by :catch is the :throw value,
  or `Vim(cmd):E123: message` for errors raised by commands.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from viml.commands.command import ExecutionResult
from viml.errors import VimError, VimThrow
from viml.evaluation.regex import compile_pattern
from viml.reader.parser import parse_expression
from viml.statements.nodes import (
    Block,
    BreakStatement,
    CommandLine,
    ContinueStatement,
    DeleteFunction,
    FinishStatement,
    ForLoop,
    FunctionDefinition,
    FunctionListing,
    IfStatement,
    ReturnStatement,
    Statement,
    ThrowStatement,
    TryStatement,
    WhileLoop,
)
from viml.statements.signals import BreakSignal, ContinueSignal, FinishSignal, ReturnSignal
from viml.types.coercion import to_boolean, to_string
from viml.types.context import ExecutionContext
from viml.types.environment import Variable
from viml.types.function import FunctionDeclaration
from viml.types.values import (
    FuncrefKind,
    VimBlob,
    VimDictionary,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)

FUNCTION_NAME_RE = re.compile(r"(?:s:)?[A-Za-z_][A-Za-z0-9_#]*")


def exception_text(error: VimError) -> str:
    """Value of v:exception for a caught error."""
    if isinstance(error, VimThrow):
        return error.value
    if error.command:
        return f"Vim({error.command}):{error}"
    return f"Vim:{error}"


def _length(sequence: VimList | VimBlob | VimString) -> int:
    match sequence:
        case VimList():
            return len(sequence.values)
        case VimBlob():
            return len(sequence.data)
        case VimString():
            return len(sequence.value)


def _item(sequence: VimList | VimBlob | VimString, i: int) -> VimValue:
    match sequence:
        case VimList():
            return sequence.values[i]
        case VimBlob():
            return VimInt(sequence.data[i])
        case VimString():
            return VimString(sequence.value[i])


class StatementExecutor:
    __slots__ = ("vim",)

    def __init__(self, vim: Interpreter):
        self.vim = vim

    def evaluate(self, text: str, context: ExecutionContext) -> VimValue:
        return self.vim.eval_fn(parse_expression(text), self.vim, context)

    def execute_block(self, statements: Block, context: ExecutionContext) -> ExecutionResult:
        result = ExecutionResult.SUCCESS
        for statement in statements:
            if self.execute(statement, context) is ExecutionResult.ERROR:
                result = ExecutionResult.ERROR
        return result

    def execute(self, statement: Statement, context: ExecutionContext) -> ExecutionResult:
        match statement:
            case CommandLine(text=text):
                return self.vim.dispatcher.run_line(text, context)
            case IfStatement(branches=branches, otherwise=otherwise):
                for condition, body in branches:
                    if to_boolean(self.evaluate(condition, context)):
                        return self.execute_block(body, context)
                if otherwise is not None:
                    return self.execute_block(otherwise, context)
                return ExecutionResult.SUCCESS
            case WhileLoop(condition=condition, body=body):
                result = ExecutionResult.SUCCESS
                while to_boolean(self.evaluate(condition, context)):
                    try:
                        if self.execute_block(body, context) is ExecutionResult.ERROR:
                            result = ExecutionResult.ERROR
                    except BreakSignal:
                        break
                    except ContinueSignal:
                        continue
                return result
            case ForLoop():
                return self._for(statement, context)
            case TryStatement():
                return self._try(statement, context)
            case FunctionDefinition():
                self._define(statement, context)
            case FunctionListing(name=name):
                self._list(name)
            case DeleteFunction(name=name, bang=bang):
                self._delete(name, bang, context)
            case ReturnStatement(expression=expression):
                if context.frame is None:
                    raise VimError(":return not inside a function", "E133")
                value = self.evaluate(expression, context) if expression is not None else VimInt(0)
                raise ReturnSignal(value)
            case ThrowStatement(expression=expression):
                value = to_string(self.evaluate(expression, context))
                if value.startswith("Vim"):
                    raise VimError("Cannot :throw exceptions with 'Vim' prefix", "E608")
                raise VimThrow(value)
            case BreakStatement():
                raise BreakSignal()
            case ContinueStatement():
                raise ContinueSignal()
            case FinishStatement():
                raise FinishSignal()
        return ExecutionResult.SUCCESS

    # -------------------------------
    # Loops
    # -------------------------------
    def _for(self, loop: ForLoop, context: ExecutionContext) -> ExecutionResult:
        iterable = self.evaluate(loop.iterable, context)
        if not isinstance(iterable, (VimList, VimBlob, VimString)):
            raise VimError("String, List or Blob required", "E1098")
        result = ExecutionResult.SUCCESS
        i = 0
        # by index: items added to a List while looping are visited too
        while i < _length(iterable):
            self._assign_targets(loop, _item(iterable, i), context)
            i += 1
            try:
                if self.execute_block(loop.body, context) is ExecutionResult.ERROR:
                    result = ExecutionResult.ERROR
            except BreakSignal:
                break
            except ContinueSignal:
                continue
        return result

    def _assign_targets(self, loop: ForLoop, item: VimValue, context: ExecutionContext) -> None:
        if not loop.unpack:
            self.vim.variables.store(Variable.parse(loop.targets[0]), item, context)
            return
        if not isinstance(item, VimList):
            raise VimError("List required", "E714")
        if len(item.values) < len(loop.targets):
            raise VimError("More targets than List items", "E688")
        if len(item.values) > len(loop.targets):
            raise VimError("Less targets than List items", "E687")
        for target, value in zip(loop.targets, item.values):
            self.vim.variables.store(Variable.parse(target), value, context)

    # -------------------------------
    # Exceptions
    # -------------------------------
    def _try(self, statement: TryStatement, context: ExecutionContext) -> ExecutionResult:
        try:
            try:
                return self.execute_block(statement.body, context)
            except VimError as error:
                text = exception_text(error)
                for pattern, handler in statement.catches:
                    if pattern is None or compile_pattern(pattern).search(text):
                        logger.debug("caught %r", text)
                        return self._catch(text, handler, context)
                raise
        finally:
            if statement.finally_body is not None:
                self.execute_block(statement.finally_body, context)

    def _catch(self, text: str, handler: Block, context: ExecutionContext) -> ExecutionResult:
        variables = self.vim.variables
        previous = variables.vim_scope.dictionary["exception"]
        variables.set_vim_variable("exception", VimString(text))
        try:
            return self.execute_block(handler, context)
        finally:
            variables.set_vim_variable("exception", previous)

    # -------------------------------
    # Functions
    # -------------------------------
    def _define(self, definition: FunctionDefinition, context: ExecutionContext) -> None:
        if definition.is_closure and context.frame is None:
            raise VimError("Closure function should not be at top level", "E932")
        name = definition.name
        if name.startswith("g:"):
            name = name[2:]
        dotted = "." in name
        if dotted:
            owner_text, _, key = name.rpartition(".")
            owner = self.evaluate(owner_text, context)
            if not isinstance(owner, VimDictionary):
                raise VimError("Dictionary required", "E715")
            if key in owner.dictionary and not definition.replace:
                raise VimError(f"Dictionary entry already exists: {key}", "E717")
            if owner.locked or key in owner.locked_keys:
                raise VimError(f"Value is locked: {name}", "E741")
            name = self.vim.functions.next_anonymous_name()
        elif not FUNCTION_NAME_RE.fullmatch(name) or not (
            name[0].isupper() or name.startswith("s:") or "#" in name
        ):
            raise VimError(f"Function name must start with a capital or \"s:\": {name}", "E128")

        declaration = FunctionDeclaration(
            name,
            list(definition.params),
            definition.body,
            has_varargs=definition.has_varargs,
            is_dict=definition.is_dict or dotted,
            is_abort=definition.is_abort,
            is_range=definition.is_range,
            is_closure=definition.is_closure,
            script=context.script,
            closure=context.frame if definition.is_closure else None,
        )
        self.vim.functions.define(declaration, definition.replace or dotted)
        if dotted:
            owner.dictionary[key] = VimFuncref(declaration, kind=FuncrefKind.FUNCTION)
        logger.debug("defined %s", declaration)

    def _list(self, name: str | None) -> None:
        messages = self.vim.host.messages
        if name is None:
            for declaration in sorted(self.vim.functions.functions.values(), key=lambda d: d.name):
                messages.output(str(declaration))
            return
        declaration = self.vim.functions.find(name[2:] if name.startswith("g:") else name)
        if declaration is None:
            raise VimError(f"Undefined function: {name}", "E123")
        messages.output(f"{declaration}\nendfunction")

    def _delete(self, name: str, bang: bool, context: ExecutionContext) -> None:
        if name.startswith("g:"):
            name = name[2:]
        if "." in name:
            owner_text, _, key = name.rpartition(".")
            owner = self.evaluate(owner_text, context)
            if not isinstance(owner, VimDictionary):
                raise VimError("Dictionary required", "E715")
            value = owner.dictionary.pop(key, None)
            if isinstance(value, VimFuncref):
                self.vim.functions.remove(value.name)
            elif not bang:
                raise VimError(f"No such function: {name}", "E130")
            return
        if not self.vim.functions.remove(name) and not bang:
            raise VimError(f"No such function: {name}", "E130")
