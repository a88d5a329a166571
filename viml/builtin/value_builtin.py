"""Value, function and editor query functions: string(), type(), eval(),
function(), funcref(), call(), islocked(), exists(), str2nr(), abs(),
tolower(), toupper(), line(), col() and submatch().
"""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING, Callable

from viml.errors import InvalidExpression, UnknownFunction, VimError
from viml.evaluation.apply import call_funcref, call_handler, find_function
from viml.evaluation.evaluator import evaluate, index_value
from viml.reader.expressions import IndexExpression, MemberExpression, VariableExpression
from viml.reader.parser import parse_expression
from viml.types.coercion import to_number, to_string, to_string_repr, type_number
from viml.types.context import ExecutionContext
from viml.types.function import BuiltinFunction
from viml.types.options import UnknownOption
from viml.types.values import (
    INT_MAX,
    FuncrefKind,
    VimDictionary,
    VimFloat,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
    wrap32,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


STR2NR_PATTERNS = {
    2: re.compile(r"\s*([-+]?)(?:0[bB])?([01]*)"),
    8: re.compile(r"\s*([-+]?)(?:0[oO]?)?([0-7]*)"),
    10: re.compile(r"\s*([-+]?)([0-9]*)"),
    16: re.compile(r"\s*([-+]?)(?:0[xX])?([0-9a-fA-F]*)"),
}


# -------------------------------
# Values
# -------------------------------
def string_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """string({expr}): printable form, Strings quoted."""
    return VimString(to_string_repr(args[0]))


def type_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimInt(type_number(args[0]))


def eval_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return evaluate(parse_expression(to_string(args[0])), vim, context)


def str2nr_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """str2nr({string} [, {base}])"""
    base = to_number(args[1]) if len(args) > 1 else 10
    if base not in STR2NR_PATTERNS:
        raise VimError("Invalid argument", "E474")
    m = STR2NR_PATTERNS[base].match(to_string(args[0]))
    digits = m.group(2)
    if not digits:
        return VimInt(0)
    n = int(digits, base)
    return VimInt(wrap32(-n if m.group(1) == "-" else n))


def abs_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    value = args[0]
    if isinstance(value, VimFloat):
        return VimFloat(abs(value.value))
    return VimInt(min(abs(to_number(value)), INT_MAX))


def tolower_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimString(to_string(args[0]).lower())


def toupper_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimString(to_string(args[0]).upper())


# -------------------------------
# Functions
# -------------------------------
def _make_funcref(function_name: str, kind: FuncrefKind, args: list[VimValue], vim: Interpreter) -> VimFuncref:
    target = args[0]
    dictionary: VimDictionary | None = None
    if isinstance(target, VimFuncref):
        handler = target.handler
        arguments = list(target.arguments.values)
        dictionary = target.dictionary
    else:
        name = to_string(target)
        handler = find_function(name, vim)
        if handler is None:
            raise VimError(f"Unknown function: {name}", "E700")
        arguments = []
    rest = args[1:]
    if rest and isinstance(rest[0], VimList):
        arguments += rest[0].values
        rest = rest[1:]
    bound: VimDictionary | None = None
    if rest:
        if not isinstance(rest[0], VimDictionary):
            raise VimError(f"Second argument of {function_name}() must be a list or a dict", "E923")
        bound = rest[0]
    return VimFuncref(
        handler,
        VimList(arguments),
        bound if bound is not None else dictionary,
        kind,
        is_self_fixed=bound is not None,
    )


def function_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """function({name} [, {arglist}] [, {dict}]): Funcref following the name."""
    return _make_funcref("function", FuncrefKind.FUNCTION, args, vim)


def funcref_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """funcref({name} [, {arglist}] [, {dict}]): Funcref bound to the current definition."""
    return _make_funcref("funcref", FuncrefKind.FUNCREF, args, vim)


def call_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """call({func}, {arglist} [, {dict}])"""
    target, arglist = args[0], args[1]
    if not isinstance(arglist, VimList):
        raise VimError("List required", "E714")
    self_dict = None
    if len(args) > 2:
        if not isinstance(args[2], VimDictionary):
            raise VimError("Dictionary required", "E715")
        self_dict = args[2]
    arguments = list(arglist.values)
    if isinstance(target, VimFuncref):
        return call_funcref(target, arguments, vim, context, self_dict)
    name = to_string(target)
    handler = find_function(name, vim)
    if handler is None:
        raise UnknownFunction(f"Unknown function: {name}")
    return call_handler(handler, arguments, vim, context, self_dict)


# -------------------------------
# Variables
# -------------------------------
def islocked_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """islocked({expr}): 1 when the named variable or item is locked, -1 when it does not exist."""
    expr = parse_expression(to_string(args[0]))
    match expr:
        case VariableExpression(variable=variable):
            if not vim.variables.exists(variable, context):
                return VimInt(-1)
            return VimInt(1 if vim.variables.is_locked(variable, context) else 0)
        case IndexExpression(target=target, index=index):
            container = evaluate(target, vim, context)
            key = evaluate(index, vim, context)
            if isinstance(container, VimDictionary) and to_string(key) in container.locked_keys:
                return VimInt(1)
            return VimInt(1 if index_value(container, key).is_locked else 0)
        case MemberExpression(target=target, member=member):
            container = evaluate(target, vim, context)
            if not isinstance(container, VimDictionary):
                raise VimError("Dictionary required", "E715")
            if member in container.locked_keys:
                return VimInt(1)
            return VimInt(1 if index_value(container, VimString(member)).is_locked else 0)
    raise InvalidExpression(f"Invalid expression: \"{to_string(args[0])}\"")


def exists_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """exists({expr}): &option, *function, $ENV, :command or a variable."""
    text = to_string(args[0]).strip()
    if text.startswith("&"):
        try:
            vim.options.find(text[1:])
        except UnknownOption:
            return VimInt(0)
        return VimInt(1)
    if text.startswith("*"):
        return VimInt(1 if find_function(text[1:], vim) is not None else 0)
    if text.startswith("$"):
        return VimInt(1 if text[1:] in os.environ else 0)
    if text.startswith(":"):
        return VimInt(vim.dispatcher.command_exists(text[1:]))
    try:
        evaluate(parse_expression(text), vim, context)
    except VimError:
        return VimInt(0)
    return VimInt(1)


# -------------------------------
# Editor
# -------------------------------
def line_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """line({expr}): '.', '$' or a mark, 1-based; 0 when unknown."""
    what = to_string(args[0])
    editor = vim.host.editor
    if what == ".":
        return VimInt(context.current_line)
    if what == "$":
        return VimInt(editor.line_count())
    if what.startswith("'") and len(what) == 2:
        mark = editor.get_mark(what[1])
        return VimInt(mark + 1 if mark is not None else 0)
    return VimInt(0)


def col_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """col({expr}): '.' is the caret column, '$' one past the end of the line."""
    what = to_string(args[0])
    caret = vim.host.editor.primary_caret()
    if what == ".":
        return VimInt(caret.column + 1)
    if what == "$":
        return VimInt(len(vim.host.editor.line_text(caret.line).encode()) + 1)
    return VimInt(0)


def submatch_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """submatch({nr} [, {list}]): group of the match being replaced by `:s/.../\\=`."""
    nr = to_number(args[0])
    if nr < 0 or nr > 9:
        raise VimError(f"Invalid argument: {nr}", "E935")
    current = vim.current_match
    text = ""
    if current is not None and nr <= current.re.groups:
        text = current.group(nr) or ""
    if len(args) > 1 and to_number(args[1]):
        return VimList([VimString(line) for line in text.split("\n")])
    return VimString(text)


FUNCTIONS: list[tuple[str, Callable[..., VimValue], int, int | None]] = [
    ("string", string_function, 1, 1),
    ("type", type_function, 1, 1),
    ("eval", eval_function, 1, 1),
    ("str2nr", str2nr_function, 1, 3),
    ("abs", abs_function, 1, 1),
    ("tolower", tolower_function, 1, 1),
    ("toupper", toupper_function, 1, 1),
    ("function", function_function, 1, 3),
    ("funcref", funcref_function, 1, 3),
    ("call", call_function, 2, 3),
    ("islocked", islocked_function, 1, 1),
    ("exists", exists_function, 1, 1),
    ("line", line_function, 1, 1),
    ("col", col_function, 1, 1),
    ("submatch", submatch_function, 1, 2),
]


def register(table: dict[str, BuiltinFunction]) -> None:
    """Register the value and function helpers into `table`."""
    for name, fn, min_args, max_args in FUNCTIONS:
        table[name] = BuiltinFunction(name, fn, min_args, max_args)
