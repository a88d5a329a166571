"""Collection functions: filter(), map(), mapnew(), foreach(), remove(),
extend(), slice(), reverse(), get(), min() and max().

Functions that change a container in place check its lock before touching
it and fail with E741 naming the function. A callback argument may be an
expression String (evaluated with v:key and v:val set), a Number or Float
constant, a Funcref or a lambda.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from viml.errors import (
    IndexOutOfRange,
    InvalidArgument,
    InvalidExpression,
    InvalidRange,
    KeyAlreadyExists,
    KeyNotPresent,
    LockedValue,
    TooManyArguments,
    VimError,
)
from viml.evaluation.apply import call_funcref
from viml.evaluation.evaluator import evaluate
from viml.evaluation.operators import BinaryOperator, compare
from viml.reader.parser import parse_expression
from viml.types.coercion import to_boolean, to_number, to_string
from viml.types.context import ExecutionContext
from viml.types.function import BuiltinFunction, Lambda
from viml.types.values import (
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


def require_unlocked(value: VimValue, function_name: str) -> None:
    if value.is_locked:
        raise LockedValue(f"Value is locked: {function_name}() argument")


def _require_iterable(value: VimValue, function_name: str) -> None:
    if not isinstance(value, (VimList, VimDictionary, VimString, VimBlob)):
        raise VimError(f"Argument of {function_name}() must be a List, String, Dictionary or Blob", "E1250")


def items_of(container: VimValue) -> list[tuple[VimValue, VimValue]]:
    """(v:key, v:val) pairs of a snapshot of `container`."""
    match container:
        case VimList():
            return [(VimInt(i), value) for i, value in enumerate(container.values)]
        case VimDictionary():
            return [(VimString(key), value) for key, value in container.dictionary.items()]
        case VimString():
            return [(VimInt(i), VimString(c)) for i, c in enumerate(container.value)]
        case VimBlob():
            return [(VimInt(i), VimInt(b)) for i, b in enumerate(bytes(container.data))]
    return []


class Callback:
    """The second argument of filter()/map()/foreach() made callable as (key, value)."""

    __slots__ = ("vim", "context", "expression", "funcref", "constant")

    def __init__(self, argument: VimValue, vim: Interpreter, context: ExecutionContext):
        self.vim = vim
        self.context = context
        self.expression = None
        self.funcref: VimFuncref | None = None
        self.constant: VimValue | None = None
        match argument:
            case VimFuncref():
                self.funcref = argument
            case VimString():
                if not argument.value.strip():
                    raise InvalidExpression('Invalid expression: ""')
                self.expression = parse_expression(argument.value)
            case VimInt() | VimFloat():
                self.constant = argument
            case _:
                # E730, E731 or E976
                to_string(argument)

    def __call__(self, key: VimValue, value: VimValue) -> VimValue:
        with self.vim.variables.callback_variables(key, value):
            if self.expression is not None:
                return evaluate(self.expression, self.vim, self.context)
            if self.funcref is not None:
                args = [key, value]
                handler = self.funcref.handler
                if isinstance(handler, Lambda):
                    # a lambda receives only the arguments it declares
                    wanted = len(handler.params) - len(self.funcref.arguments.values)
                    args = args[:max(wanted, 0)]
                return call_funcref(self.funcref, args, self.vim, self.context)
            return shallow_copy(self.constant)


# -------------------------------
# Callback functions
# -------------------------------
def filter_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """filter({expr1}, {expr2}): remove the items for which {expr2} is false."""
    target = args[0]
    _require_iterable(target, "filter")
    keep = Callback(args[1], vim, context)
    if isinstance(target, VimString):
        return VimString("".join(
            c for i, c in enumerate(target.value) if to_boolean(keep(VimInt(i), VimString(c)))
        ))
    require_unlocked(target, "filter")
    match target:
        case VimList():
            position = 0
            for index, value in enumerate(list(target.values)):
                if to_boolean(keep(VimInt(index), value)):
                    position += 1
                    continue
                if value.is_locked:
                    raise LockedValue("Value is locked: filter() argument")
                del target.values[position]
        case VimDictionary():
            for key, value in list(target.dictionary.items()):
                if not to_boolean(keep(VimString(key), value)):
                    if key in target.locked_keys or value.is_locked:
                        raise LockedValue("Value is locked: filter() argument")
                    del target.dictionary[key]
        case VimBlob():
            kept = bytearray(
                b for i, b in enumerate(bytes(target.data)) if to_boolean(keep(VimInt(i), VimInt(b)))
            )
            target.data[:] = kept
    return target


def _blob_byte(value: VimValue) -> int:
    n = to_number(value)
    if not 0 <= n <= 255:
        raise InvalidArgument(f"Invalid value for blob: {n}", "E1239")
    return n


def _map(function_name: str, args: list[VimValue], vim: Interpreter, context: ExecutionContext,
         in_place: bool) -> VimValue:
    target = args[0]
    _require_iterable(target, function_name)
    transform = Callback(args[1], vim, context)
    if isinstance(target, VimString):
        return VimString("".join(
            to_string(transform(VimInt(i), VimString(c))) for i, c in enumerate(target.value)
        ))
    if in_place:
        require_unlocked(target, function_name)
    else:
        target = shallow_copy(target)
    match target:
        case VimList():
            for index, value in enumerate(list(target.values)):
                if in_place and value.is_locked:
                    raise LockedValue(f"Value is locked: {function_name}() argument")
                target.values[index] = transform(VimInt(index), value)
        case VimDictionary():
            for key, value in list(target.dictionary.items()):
                if in_place and (value.is_locked or key in target.locked_keys):
                    raise LockedValue(f"Value is locked: {function_name}() argument")
                target.dictionary[key] = transform(VimString(key), value)
        case VimBlob():
            for index, b in enumerate(bytes(target.data)):
                target.data[index] = _blob_byte(transform(VimInt(index), VimInt(b)))
    return target


def map_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """map({expr1}, {expr2}): replace every item in place by {expr2}."""
    return _map("map", args, vim, context, in_place=True)


def mapnew_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """mapnew({expr1}, {expr2}): like map() but on a new container."""
    return _map("mapnew", args, vim, context, in_place=False)


def foreach_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """foreach({expr1}, {expr2}): call {expr2} for every item, return {expr1}."""
    target = args[0]
    _require_iterable(target, "foreach")
    visit = Callback(args[1], vim, context)
    for key, value in items_of(target):
        visit(key, value)
    return target


# -------------------------------
# Removing and adding items
# -------------------------------
def _remove_end(end: int, length: int) -> int:
    """Last index removed by remove({list}, {idx}, {end})."""
    if end < 0:
        return min(length + end + 1, length - 1)
    if end >= length:
        raise IndexOutOfRange(f"List index out of range: {end}")
    return end


def _sequence_start(index: int, length: int, message: str, code: str = "E684") -> int:
    position = index + length if index < 0 else index
    if not 0 <= position < length:
        raise IndexOutOfRange(f"{message}: {index}", code)
    return position


def remove_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """remove({list}, {idx} [, {end}]), remove({blob}, ...) or remove({dict}, {key})."""
    target = args[0]
    match target:
        case VimList():
            require_unlocked(target, "remove")
            length = len(target.values)
            start = _sequence_start(to_number(args[1]), length, "List index out of range")
            if len(args) == 2:
                return target.values.pop(start)
            end = _remove_end(to_number(args[2]), length)
            if end < start:
                raise InvalidRange("Invalid range")
            removed = target.values[start:end + 1]
            del target.values[start:end + 1]
            return VimList(removed)
        case VimBlob():
            require_unlocked(target, "remove")
            length = len(target.data)
            start = _sequence_start(to_number(args[1]), length, "Blob index out of range", "E979")
            if len(args) == 2:
                byte = target.data[start]
                del target.data[start]
                return VimInt(byte)
            end = _remove_end(to_number(args[2]), length)
            if end < start:
                raise InvalidRange("Invalid range")
            removed = bytes(target.data[start:end + 1])
            del target.data[start:end + 1]
            return VimBlob(removed)
        case VimDictionary():
            if len(args) > 2:
                raise TooManyArguments("Too many arguments for function: remove")
            require_unlocked(target, "remove")
            key = to_string(args[1])
            if key not in target.dictionary:
                raise KeyNotPresent(f"Key not present in Dictionary: \"{key}\"")
            if key in target.locked_keys:
                raise LockedValue("Value is locked: remove() argument")
            return target.dictionary.pop(key)
    raise VimError("Argument of remove() must be a List, Dictionary or Blob", "E896")


def _insert_position(args: list[VimValue], length: int) -> int:
    if len(args) < 3:
        return length
    index = to_number(args[2])
    position = index + length if index < 0 else index
    if not 0 <= position <= length:
        raise IndexOutOfRange(f"List index out of range: {index}")
    return position


def extend_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """extend({expr1}, {expr2} [, {expr3}]): append {expr2} to {expr1} in place.

    For Dictionaries {expr3} decides what happens to existing keys: "force"
    (the default) overwrites, "keep" skips and "error" raises E737 at the
    first conflict, after the preceding keys were added.
    """
    first, second = args[0], args[1]
    match first, second:
        case VimList(), VimList():
            require_unlocked(first, "extend")
            position = _insert_position(args, len(first.values))
            first.values[position:position] = list(second.values)
            return first
        case VimBlob(), VimBlob():
            require_unlocked(first, "extend")
            position = _insert_position(args, len(first.data))
            first.data[position:position] = bytes(second.data)
            return first
        case VimDictionary(), VimDictionary():
            mode = to_string(args[2]) if len(args) > 2 else "force"
            if mode not in ("keep", "force", "error"):
                raise InvalidArgument(f"Invalid argument: {mode}")
            require_unlocked(first, "extend")
            for key, value in list(second.dictionary.items()):
                if key in first.dictionary:
                    if mode == "keep":
                        continue
                    if mode == "error":
                        raise KeyAlreadyExists(f"Key already exists: {key}")
                    if key in first.locked_keys:
                        raise LockedValue("Value is locked: extend() argument")
                first.dictionary[key] = value
            return first
    raise VimError("Argument of extend() must be a List or Dictionary", "E712")


# -------------------------------
# Non-mutating access
# -------------------------------
def _exclusive_bounds(length: int, args: list[VimValue]) -> tuple[int, int]:
    start = to_number(args[1])
    end = to_number(args[2]) if len(args) > 2 else length
    if start < 0:
        start += length
    if end < 0:
        end += length
    return max(start, 0), min(end, length)


def slice_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """slice({expr}, {start} [, {end}]): like expr[start : end - 1]."""
    target = args[0]
    match target:
        case VimList():
            start, end = _exclusive_bounds(len(target.values), args)
            return VimList(target.values[start:end])
        case VimBlob():
            start, end = _exclusive_bounds(len(target.data), args)
            return VimBlob(target.data[start:end])
        case VimString() | VimInt():
            text = to_string(target)
            start, end = _exclusive_bounds(len(text), args)
            return VimString(text[start:end])
        case VimDictionary():
            return target
    return VimInt(0)


def reverse_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """reverse({object}): reverse a List or Blob in place, or return a reversed String."""
    target = args[0]
    match target:
        case VimList():
            require_unlocked(target, "reverse")
            target.values.reverse()
            return target
        case VimBlob():
            require_unlocked(target, "reverse")
            target.data.reverse()
            return target
        case VimString():
            return VimString(target.value[::-1])
    return VimInt(0)


def get_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """get({list}, {idx} [, {default}]), get({dict}, {key} ...), get({func}, {what})."""
    target = args[0]
    default = args[2] if len(args) > 2 else None
    match target:
        case VimList():
            index = to_number(args[1])
            position = index + len(target.values) if index < 0 else index
            if 0 <= position < len(target.values):
                return target.values[position]
            return default if default is not None else VimInt(0)
        case VimBlob():
            index = to_number(args[1])
            position = index + len(target.data) if index < 0 else index
            if 0 <= position < len(target.data):
                return VimInt(target.data[position])
            return default if default is not None else VimInt(-1)
        case VimDictionary():
            key = to_string(args[1])
            if key in target.dictionary:
                return target.dictionary[key]
            return default if default is not None else VimInt(0)
        case VimFuncref():
            match to_string(args[1]):
                case "name":
                    return VimString(target.name)
                case "func":
                    return VimFuncref(target.handler, kind=target.kind)
                case "args":
                    return VimList(list(target.arguments.values))
                case "dict":
                    if target.dictionary is not None:
                        return target.dictionary
                    return default if default is not None else VimInt(0)
                case what:
                    raise InvalidArgument(f"Invalid argument: {what}")
    raise VimError("Argument of get() must be a List, Dictionary or Blob", "E896")


def _extreme(function_name: str, op: BinaryOperator, target: VimValue) -> VimValue:
    match target:
        case VimList():
            values = target.values
        case VimDictionary():
            values = list(target.dictionary.values())
        case _:
            raise VimError(f"Argument of {function_name}() must be a List or Dictionary", "E712")
    if not values:
        return VimInt(0)
    best = VimInt(to_number(values[0]))
    for value in values[1:]:
        candidate = VimInt(to_number(value))
        if compare(op, candidate, best):
            best = candidate
    return best


def min_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """min({expr}): smallest item, 0 when empty."""
    return _extreme("min", BinaryOperator.LESS, args[0])


def max_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """max({expr}): largest item, 0 when empty."""
    return _extreme("max", BinaryOperator.GREATER, args[0])


FUNCTIONS: list[tuple[str, Callable[..., VimValue], int, int | None]] = [
    ("filter", filter_function, 2, 2),
    ("map", map_function, 2, 2),
    ("mapnew", mapnew_function, 2, 2),
    ("foreach", foreach_function, 2, 2),
    ("remove", remove_function, 2, 3),
    ("extend", extend_function, 2, 3),
    ("slice", slice_function, 2, 3),
    ("reverse", reverse_function, 1, 1),
    ("get", get_function, 2, 3),
    ("min", min_function, 1, 1),
    ("max", max_function, 1, 1),
]


def register(table: dict[str, BuiltinFunction]) -> None:
    """Register the collection functions into `table`."""
    for name, fn, min_args, max_args in FUNCTIONS:
        table[name] = BuiltinFunction(name, fn, min_args, max_args)
