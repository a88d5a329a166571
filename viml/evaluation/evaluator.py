"""Expression evaluator.

Walks the expression tree with structural pattern matching. Literals build
fresh values on every evaluation, so a value locked at run time never leaks
back into the parsed script. Function application lives in
viml.evaluation.apply.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from viml.errors import (
    CoercionKind,
    IndexOutOfRange,
    InvalidOperation,
    KeyNotPresent,
    TypeCoercionError,
    UndefinedVariable,
)
from viml.evaluation.apply import call_funcref, call_method, call_named
from viml.evaluation.operators import BinaryOperator, apply, apply_unary, concatenate
from viml.reader.expressions import (
    BinaryExpression,
    BlobLiteral,
    CallExpression,
    DictionaryLiteral,
    EnvVariableExpression,
    Expression,
    FalsyExpression,
    FloatLiteral,
    FunctionCall,
    IndexExpression,
    LambdaExpression,
    ListLiteral,
    MemberExpression,
    MethodCall,
    NumberLiteral,
    OptionExpression,
    RegisterExpression,
    SliceExpression,
    StringLiteral,
    TernaryExpression,
    UnaryExpression,
    VariableExpression,
)
from viml.types.coercion import to_boolean, to_number, to_string
from viml.types.context import ExecutionContext
from viml.types.environment import Variable
from viml.types.function import FunctionDeclaration, Lambda
from viml.types.values import (
    FuncrefKind,
    Undefined,
    VimBlob,
    VimDictionary,
    VimFloat,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
    shallow_copy,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


def evaluate(expr: Expression, vim: Interpreter, context: ExecutionContext) -> VimValue:
    match expr:
        case NumberLiteral(value=value):
            return VimInt(value)
        case FloatLiteral(value=value):
            return VimFloat(value)
        case StringLiteral(value=value):
            return VimString(value)
        case BlobLiteral(data=data):
            return VimBlob(data)
        case ListLiteral(items=items):
            return VimList([evaluate(item, vim, context) for item in items])
        case DictionaryLiteral(entries=entries):
            dictionary = VimDictionary()
            for key_expr, value_expr in entries:
                key = to_string(evaluate(key_expr, vim, context))
                dictionary.dictionary[key] = evaluate(value_expr, vim, context)
            return dictionary
        case VariableExpression(variable=variable):
            return _fetched(evaluate_variable(variable, vim, context))
        case OptionExpression(name=name):
            return vim.options.get_value(name)
        case RegisterExpression(register=name):
            register = vim.host.registers.get_register(name)
            return VimString(register.text if register is not None else "")
        case EnvVariableExpression(name=name):
            return VimString(os.environ.get(name, ""))
        case IndexExpression(target=target, index=index):
            container = evaluate(target, vim, context)
            return _fetched(index_value(container, evaluate(index, vim, context)))
        case SliceExpression(target=target, start=start, end=end):
            container = evaluate(target, vim, context)
            first = evaluate(start, vim, context) if start is not None else None
            last = evaluate(end, vim, context) if end is not None else None
            return slice_value(container, first, last)
        case MemberExpression(target=target, member=member):
            value = evaluate(target, vim, context)
            if isinstance(value, VimDictionary):
                return _fetched(member_value(value, member))
            # `a.b` between non-dictionaries is concatenation without spaces
            if member.isdigit():
                return concatenate(value, VimInt(int(member)))
            return concatenate(value, evaluate_variable(Variable.parse(member), vim, context))
        case FunctionCall(name=name, args=args):
            arguments = [evaluate(arg, vim, context) for arg in args]
            return call_named(name, arguments, vim, context)
        case CallExpression(callee=callee, args=args):
            function = evaluate(callee, vim, context)
            arguments = [evaluate(arg, vim, context) for arg in args]
            if not isinstance(function, VimFuncref):
                raise InvalidOperation("Not a callable type", "E1085")
            return call_funcref(function, arguments, vim, context)
        case MethodCall(target=target, name=name, args=args, callee=callee):
            receiver = evaluate(target, vim, context)
            function = evaluate(callee, vim, context) if callee is not None else None
            arguments = [evaluate(arg, vim, context) for arg in args]
            return call_method(receiver, name, function, arguments, vim, context)
        case LambdaExpression(params=params, body=body):
            handler = Lambda(vim.functions.next_lambda_name(), list(params), body, context.frame, context.script)
            return VimFuncref(handler, kind=FuncrefKind.LAMBDA)
        case UnaryExpression(op=op, operand=operand):
            return apply_unary(op, evaluate(operand, vim, context))
        case BinaryExpression(op=BinaryOperator.LOGICAL_AND, lhs=lhs, rhs=rhs):
            if not to_boolean(evaluate(lhs, vim, context)):
                return VimInt(0)
            return VimInt(1 if to_boolean(evaluate(rhs, vim, context)) else 0)
        case BinaryExpression(op=BinaryOperator.LOGICAL_OR, lhs=lhs, rhs=rhs):
            if to_boolean(evaluate(lhs, vim, context)):
                return VimInt(1)
            return VimInt(1 if to_boolean(evaluate(rhs, vim, context)) else 0)
        case BinaryExpression(op=op, lhs=lhs, rhs=rhs, case=case):
            left = evaluate(lhs, vim, context)
            right = evaluate(rhs, vim, context)
            return apply(op, left, right, case.resolve(vim.options.ignorecase))
        case TernaryExpression(condition=condition, then=then, otherwise=otherwise):
            if to_boolean(evaluate(condition, vim, context)):
                return evaluate(then, vim, context)
            return evaluate(otherwise, vim, context)
        case FalsyExpression(lhs=lhs, rhs=rhs):
            value = evaluate(lhs, vim, context)
            return evaluate(rhs, vim, context) if is_empty(value) else value
    raise InvalidOperation(f"Invalid expression: \"{expr}\"")


def _fetched(value: VimValue) -> VimValue:
    # scalars are values: a copy keeps the lock of the stored one from travelling
    if isinstance(value, (VimInt, VimFloat, VimString)) and value.locked:
        return shallow_copy(value)
    return value


def evaluate_variable(variable: Variable, vim: Interpreter, context: ExecutionContext) -> VimValue:
    if variable.name == "" and variable.scope is not None:
        return vim.variables.scope_dictionary(variable.scope, context)
    value = vim.variables.lookup(variable, context)
    if value is Undefined:
        raise UndefinedVariable(f"Undefined variable: {variable}")
    return value


# -------------------------------
# Indexing
# -------------------------------
def is_empty(value: VimValue) -> bool:
    """empty(): zero, empty string, empty container; Funcrefs are never empty."""
    match value:
        case VimInt() | VimFloat():
            return value.value == 0
        case VimString():
            return value.value == ""
        case VimList():
            return not value.values
        case VimDictionary():
            return not value.dictionary
        case VimBlob():
            return not value.data
        case _:
            return False


def member_value(dictionary: VimDictionary, key: str) -> VimValue:
    """d[key] and d.key; dictionary functions come back bound to `d`."""
    if key not in dictionary.dictionary:
        raise KeyNotPresent(f"Key not present in Dictionary: \"{key}\"")
    value = dictionary.dictionary[key]
    if (
        isinstance(value, VimFuncref)
        and isinstance(value.handler, FunctionDeclaration)
        and value.handler.is_dict
        and not value.is_self_fixed
    ):
        return VimFuncref(value.handler, value.arguments, dictionary, value.kind)
    return value


def index_value(target: VimValue, index: VimValue) -> VimValue:
    match target:
        case VimList():
            i = to_number(index)
            position = i + len(target.values) if i < 0 else i
            if not 0 <= position < len(target.values):
                raise IndexOutOfRange(f"List index out of range: {i}")
            return target.values[position]
        case VimDictionary():
            return member_value(target, to_string(index))
        case VimBlob():
            i = to_number(index)
            position = i + len(target.data) if i < 0 else i
            if not 0 <= position < len(target.data):
                raise IndexOutOfRange(f"Blob index out of range: {i}", "E979")
            return VimInt(target.data[position])
        case VimString() | VimInt():
            text = to_string(target)
            i = to_number(index)
            return VimString(text[i] if 0 <= i < len(text) else "")
        case VimFloat():
            raise TypeCoercionError(CoercionKind.FLOAT_AS_STRING)
        case VimFuncref():
            raise InvalidOperation("Cannot index a Funcref", "E695")


def _slice_bounds(length: int, start: VimValue | None, end: VimValue | None) -> tuple[int, int]:
    """Inclusive expression slice bounds, clamped; an empty slice has end < start."""
    first = to_number(start) if start is not None else 0
    last = to_number(end) if end is not None else -1
    if first < 0:
        first = max(first + length, 0)
    if last < 0:
        last += length
    return first, min(last, length - 1)


def slice_value(target: VimValue, start: VimValue | None, end: VimValue | None) -> VimValue:
    """x[a:b] with an inclusive end."""
    match target:
        case VimList():
            first, last = _slice_bounds(len(target.values), start, end)
            return VimList(target.values[first:last + 1] if last >= first else [])
        case VimBlob():
            first, last = _slice_bounds(len(target.data), start, end)
            return VimBlob(target.data[first:last + 1] if last >= first else b"")
        case VimString() | VimInt():
            text = to_string(target)
            first, last = _slice_bounds(len(text), start, end)
            return VimString(text[first:last + 1] if last >= first else "")
        case VimDictionary():
            raise InvalidOperation("Cannot slice a Dictionary", "E719")
        case VimFloat():
            raise TypeCoercionError(CoercionKind.FLOAT_AS_STRING)
        case VimFuncref():
            raise InvalidOperation("Cannot index a Funcref", "E695")
