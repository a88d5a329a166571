"""Function application.

This module centralizes call semantics for the evaluator, the :call command
and the builtins that take callbacks:
- Name resolution: lowercase unscoped names are builtins, anything else is
  a user function, falling back to a variable holding a Funcref.
- Partials: a Funcref's bound arguments come before the call arguments and
  its bound dictionary becomes `self` of a dict function.
- Arity is checked against the handler before any frame is created (E119,
  E118) and nesting is limited by 'maxfuncdepth' (E132).
- User functions run their body through the statement executor; :return
  unwinds with a ReturnSignal. Errors always propagate to the caller, as if
  every function were declared with `abort`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from viml.errors import (
    IllegalVariableName,
    InvalidOperation,
    TooFewArguments,
    TooManyArguments,
    UnknownFunction,
    VimError,
)
from viml.statements.signals import ReturnSignal
from viml.types.context import ExecutionContext, FunctionFrame
from viml.types.environment import Variable
from viml.types.function import BuiltinFunction, FunctionDeclaration, FunctionHandler, Lambda
from viml.types.values import (
    FuncrefKind,
    VimDictionary,
    VimFuncref,
    VimInt,
    VimList,
    VimValue,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)


def is_builtin_name(name: str) -> bool:
    return name[:1].islower() and ":" not in name and "#" not in name


def find_function(name: str, vim: Interpreter) -> FunctionHandler | None:
    """Builtin or user function called `name`, or None."""
    if is_builtin_name(name):
        return vim.builtins.get(name)
    if name.startswith("g:"):
        name = name[2:]
    return vim.functions.find(name)


def check_arity(handler: FunctionHandler, count: int) -> None:
    if count < handler.min_args:
        raise TooFewArguments(f"Not enough arguments for function: {handler.name}")
    if handler.max_args is not None and count > handler.max_args:
        raise TooManyArguments(f"Too many arguments for function: {handler.name}")


def call_named(
    name: str,
    args: list[VimValue],
    vim: Interpreter,
    context: ExecutionContext,
    line_range: tuple[int, int] | None = None,
) -> VimValue:
    """Call `name(args)` the way an expression does."""
    handler = find_function(name, vim)
    if handler is not None:
        return call_handler(handler, args, vim, context, line_range=line_range)
    try:
        variable = Variable.parse(name)
    except IllegalVariableName:
        variable = None
    if variable is not None and vim.variables.exists(variable, context):
        value = vim.variables.get(variable, context)
        if isinstance(value, VimFuncref):
            return call_funcref(value, args, vim, context, line_range=line_range)
    raise UnknownFunction(f"Unknown function: {name}")


def call_funcref(
    funcref: VimFuncref,
    args: list[VimValue],
    vim: Interpreter,
    context: ExecutionContext,
    self_dict: VimDictionary | None = None,
    line_range: tuple[int, int] | None = None,
) -> VimValue:
    """Call a Funcref, prepending its bound arguments."""
    handler = funcref.handler
    if funcref.kind is FuncrefKind.FUNCTION and isinstance(handler, FunctionDeclaration):
        # function('Name') follows redefinitions of Name
        handler = vim.functions.find(handler.name) or handler
    arguments = list(funcref.arguments.values) + list(args)
    dictionary = funcref.dictionary if funcref.dictionary is not None else self_dict
    return call_handler(handler, arguments, vim, context, dictionary, line_range)


def call_method(
    receiver: VimValue,
    name: str | None,
    function: VimValue | None,
    args: list[VimValue],
    vim: Interpreter,
    context: ExecutionContext,
) -> VimValue:
    """`receiver->name(args)` or `receiver->{lambda}(args)`."""
    arguments = [receiver] + list(args)
    if name is not None:
        return call_named(name, arguments, vim, context)
    if not isinstance(function, VimFuncref):
        raise InvalidOperation("Not a callable type", "E1085")
    return call_funcref(function, arguments, vim, context)


def call_handler(
    handler: FunctionHandler,
    args: list[VimValue],
    vim: Interpreter,
    context: ExecutionContext,
    self_dict: VimDictionary | None = None,
    line_range: tuple[int, int] | None = None,
) -> VimValue:
    check_arity(handler, len(args))
    match handler:
        case BuiltinFunction():
            return handler.fn(args, vim, context)
        case FunctionDeclaration():
            return call_user_function(handler, args, vim, context, self_dict, line_range)
        case Lambda():
            return call_lambda(handler, args, vim, context)
    raise UnknownFunction(f"Unknown function: {handler.name}")


def _enter(vim: Interpreter, context: ExecutionContext, name: str) -> int:
    depth = context.call_depth + 1
    if depth > int(vim.options.get("maxfuncdepth")):
        raise VimError("Function call depth is higher than 'maxfuncdepth'", "E132")
    logger.debug("calling %s at depth %d", name, depth)
    return depth


def call_user_function(
    fn: FunctionDeclaration,
    args: list[VimValue],
    vim: Interpreter,
    context: ExecutionContext,
    self_dict: VimDictionary | None = None,
    line_range: tuple[int, int] | None = None,
) -> VimValue:
    depth = _enter(vim, context, fn.name)
    if fn.is_dict and self_dict is None:
        raise VimError(f"Calling dict function without Dictionary: {fn.name}", "E725")

    frame = FunctionFrame(fn, self_dict=self_dict if fn.is_dict else None,
                          outer=fn.closure if fn.is_closure else None)
    arguments = frame.arguments.dictionary
    for param, value in zip(fn.params, args):
        arguments[param] = value
    extra = list(args[len(fn.params):])
    if fn.has_varargs:
        arguments["0"] = VimInt(len(extra))
        arguments["000"] = VimList(extra)
        for i, value in enumerate(extra, start=1):
            arguments[str(i)] = value
    first, last = line_range if line_range is not None else (context.current_line, context.current_line)
    arguments["firstline"] = VimInt(first)
    arguments["lastline"] = VimInt(last)
    if frame.self_dict is not None:
        frame.local.dictionary["self"] = frame.self_dict

    body_context = context.nested(frame=frame, call_depth=depth, script=fn.script or context.script)
    try:
        vim.executor.execute_block(fn.body, body_context)
    except ReturnSignal as signal:
        return signal.value
    except RecursionError:
        raise VimError("Function call depth is higher than 'maxfuncdepth'", "E132") from None
    return VimInt(0)


def call_lambda(fn: Lambda, args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    depth = _enter(vim, context, fn.name)
    frame = FunctionFrame(fn, outer=fn.closure)
    for param, value in zip(fn.params, args):
        frame.arguments.dictionary[param] = value
    body_context = context.nested(frame=frame, call_depth=depth, script=fn.script or context.script)
    return vim.eval_fn(fn.body, vim, body_context)
