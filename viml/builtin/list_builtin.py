"""List and Dictionary functions: len(), empty(), copy(), deepcopy(), keys(),
values(), items(), has_key(), add(), insert(), index(), count(), join(),
split(), sort(), uniq() and range().
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import TYPE_CHECKING, Callable

from viml.builtin.collection_builtin import require_unlocked
from viml.errors import IndexOutOfRange, InvalidArgument, VimError
from viml.evaluation.apply import call_funcref, call_handler, find_function
from viml.evaluation.evaluator import is_empty
from viml.evaluation.regex import compile_pattern
from viml.types.coercion import to_boolean, to_float, to_number, to_output_string, to_string
from viml.types.context import ExecutionContext
from viml.types.function import BuiltinFunction
from viml.types.values import (
    VimBlob,
    VimDictionary,
    VimFloat,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
    deep_copy,
    shallow_copy,
    structural_equals,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


def _require_list(value: VimValue, function_name: str) -> VimList:
    if not isinstance(value, VimList):
        raise VimError(f"Argument of {function_name}() must be a List", "E686")
    return value


def _require_dict(value: VimValue) -> VimDictionary:
    if not isinstance(value, VimDictionary):
        raise VimError("Dictionary required", "E715")
    return value


# -------------------------------
# Size and copies
# -------------------------------
def len_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """len({expr}): bytes of a String, items of a List, Dictionary or Blob."""
    value = args[0]
    match value:
        case VimString():
            return VimInt(len(value.value.encode()))
        case VimInt():
            return VimInt(len(str(value.value)))
        case VimList():
            return VimInt(len(value.values))
        case VimDictionary():
            return VimInt(len(value.dictionary))
        case VimBlob():
            return VimInt(len(value.data))
    raise InvalidArgument("Invalid type for len()", "E701")


def empty_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimInt(1 if is_empty(args[0]) else 0)


def copy_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return shallow_copy(args[0])


def deepcopy_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """deepcopy({expr} [, {noref}])"""
    noref = to_boolean(args[1]) if len(args) > 1 else False
    return deep_copy(args[0], noref)


# -------------------------------
# Dictionaries
# -------------------------------
def keys_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimList([VimString(key) for key in _require_dict(args[0]).dictionary])


def values_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    return VimList(list(_require_dict(args[0]).dictionary.values()))


def items_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    dictionary = _require_dict(args[0]).dictionary
    return VimList([VimList([VimString(key), value]) for key, value in dictionary.items()])


def has_key_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    dictionary = _require_dict(args[0])
    return VimInt(1 if to_string(args[1]) in dictionary.dictionary else 0)


# -------------------------------
# Lists
# -------------------------------
def add_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """add({object}, {expr}): append to a List or Blob in place."""
    target, item = args
    match target:
        case VimList():
            require_unlocked(target, "add")
            target.values.append(item)
            return target
        case VimBlob():
            require_unlocked(target, "add")
            n = to_number(item)
            if not 0 <= n <= 255:
                raise InvalidArgument(f"Invalid value for blob: {n}", "E1239")
            target.data.append(n)
            return target
    raise VimError("List or Blob required", "E897")


def insert_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """insert({list}, {item} [, {idx}]): insert before {idx}, at the start by default."""
    target = _require_list(args[0], "insert")
    require_unlocked(target, "insert")
    length = len(target.values)
    index = to_number(args[2]) if len(args) > 2 else 0
    position = index + length if index < 0 else index
    if not 0 <= position <= length:
        raise IndexOutOfRange(f"List index out of range: {index}")
    target.values.insert(position, args[1])
    return target


def index_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """index({object}, {expr} [, {start} [, {ic}]]): first index of {expr}, -1 if absent."""
    target, wanted = args[0], args[1]
    start = to_number(args[2]) if len(args) > 2 else 0
    ignore_case = to_boolean(args[3]) if len(args) > 3 else False
    match target:
        case VimList():
            items = target.values
            if start < 0:
                start = max(start + len(items), 0)
            for i in range(start, len(items)):
                if structural_equals(items[i], wanted, ignore_case):
                    return VimInt(i)
            return VimInt(-1)
        case VimBlob():
            byte = to_number(wanted)
            if start < 0:
                start = max(start + len(target.data), 0)
            return VimInt(target.data.find(bytes([byte]), start) if 0 <= byte <= 255 else -1)
    raise VimError("List or Blob required", "E897")


def count_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """count({comp}, {expr} [, {ic} [, {start}]])"""
    target, wanted = args[0], args[1]
    ignore_case = to_boolean(args[2]) if len(args) > 2 else False
    match target:
        case VimString():
            text, needle = target.value, to_string(wanted)
            if ignore_case:
                text, needle = text.lower(), needle.lower()
            return VimInt(text.count(needle) if needle else 0)
        case VimList():
            start = to_number(args[3]) if len(args) > 3 else 0
            if start < 0:
                start += len(target.values)
            if len(args) > 3 and not 0 <= start < len(target.values):
                raise IndexOutOfRange(f"List index out of range: {to_number(args[3])}")
            items = target.values[start:]
        case VimDictionary():
            if len(args) > 3:
                raise InvalidArgument("Invalid argument")
            items = list(target.dictionary.values())
        case _:
            raise VimError("Argument of count() must be a List or Dictionary", "E712")
    return VimInt(sum(1 for item in items if structural_equals(item, wanted, ignore_case)))


def join_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """join({list} [, {sep}]): Strings as they are, other items like string()."""
    target = args[0]
    if not isinstance(target, VimList):
        raise VimError("List required", "E714")
    separator = to_string(args[1]) if len(args) > 1 else " "
    return VimString(separator.join(to_output_string(item) for item in target.values))


def split_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """split({string} [, {pattern} [, {keepempty}]])

    Empty first and last items are dropped unless {keepempty} is set.
    """
    text = to_string(args[0])
    pattern = to_string(args[1]) if len(args) > 1 else ""
    keep_empty = to_boolean(args[2]) if len(args) > 2 else False
    if len(args) > 1 and pattern == "":
        pieces = list(text)
    else:
        regex = compile_pattern(pattern or r"\s\+", vim.options.ignorecase)
        pieces = []
        last = 0
        for m in regex.finditer(text):
            if m.end() == m.start() and m.start() in (0, len(text)):
                continue
            pieces.append(text[last:m.start()])
            last = m.end()
        pieces.append(text[last:])
    if not keep_empty:
        if pieces and pieces[0] == "":
            pieces.pop(0)
        if pieces and pieces[-1] == "":
            pieces.pop()
    return VimList([VimString(piece) for piece in pieces])


def _sort_key(how: VimValue | None, vim: Interpreter, context: ExecutionContext) -> Callable:
    """Key (or cmp_to_key comparator) for sort() and uniq()."""
    if how is None or (isinstance(how, VimString) and how.value == "") or (
        isinstance(how, VimInt) and how.value == 0
    ):
        return to_output_string
    if isinstance(how, VimInt) and how.value == 1 or isinstance(how, VimString) and how.value == "i":
        return lambda item: to_output_string(item).lower()
    if isinstance(how, VimString) and how.value == "n":
        return lambda item: item.value if isinstance(item, (VimInt, VimFloat)) else 0
    if isinstance(how, VimString) and how.value == "N":
        return lambda item: to_number(item)
    if isinstance(how, VimString) and how.value == "f":
        return lambda item: to_float(item)
    if isinstance(how, VimFuncref):
        comparator = how
    else:
        name = to_string(how)
        handler = find_function(name, vim)
        if handler is None:
            raise VimError(f"Unknown function: {name}", "E117")

        def comparator_call(a: VimValue, b: VimValue) -> int:
            return to_number(call_handler(handler, [a, b], vim, context))
        return cmp_to_key(comparator_call)

    def funcref_call(a: VimValue, b: VimValue) -> int:
        return to_number(call_funcref(comparator, [a, b], vim, context))
    return cmp_to_key(funcref_call)


def sort_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """sort({list} [, {how}]): stable in-place sort, by string value by default."""
    target = _require_list(args[0], "sort")
    require_unlocked(target, "sort")
    key = _sort_key(args[1] if len(args) > 1 else None, vim, context)
    target.values.sort(key=key)
    return target


def uniq_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """uniq({list} [, {how}]): drop adjacent repeated items in place."""
    target = _require_list(args[0], "uniq")
    require_unlocked(target, "uniq")
    key = _sort_key(args[1] if len(args) > 1 else None, vim, context)
    kept: list[VimValue] = []
    for item in target.values:
        if kept and not (key(kept[-1]) < key(item) or key(item) < key(kept[-1])):
            continue
        kept.append(item)
    target.values[:] = kept
    return target


def range_function(args: list[VimValue], vim: Interpreter, context: ExecutionContext) -> VimValue:
    """range({expr} [, {max} [, {stride}]])"""
    if len(args) == 1:
        start, end = 0, to_number(args[0]) - 1
    else:
        start, end = to_number(args[0]), to_number(args[1])
    stride = to_number(args[2]) if len(args) > 2 else 1
    if stride == 0:
        raise VimError("Stride is zero", "E726")
    if (stride > 0 and end < start - 1) or (stride < 0 and end > start + 1):
        raise VimError("Start past end", "E727")
    stop = end + 1 if stride > 0 else end - 1
    return VimList([VimInt(i) for i in range(start, stop, stride)])


FUNCTIONS: list[tuple[str, Callable[..., VimValue], int, int | None]] = [
    ("len", len_function, 1, 1),
    ("empty", empty_function, 1, 1),
    ("copy", copy_function, 1, 1),
    ("deepcopy", deepcopy_function, 1, 2),
    ("keys", keys_function, 1, 1),
    ("values", values_function, 1, 1),
    ("items", items_function, 1, 1),
    ("has_key", has_key_function, 2, 2),
    ("add", add_function, 2, 2),
    ("insert", insert_function, 2, 3),
    ("index", index_function, 2, 4),
    ("count", count_function, 2, 4),
    ("join", join_function, 1, 2),
    ("split", split_function, 1, 3),
    ("sort", sort_function, 1, 3),
    ("uniq", uniq_function, 1, 3),
    ("range", range_function, 1, 3),
]


def register(table: dict[str, BuiltinFunction]) -> None:
    """Register the List and Dictionary functions into `table`."""
    for name, fn, min_args, max_args in FUNCTIONS:
        table[name] = BuiltinFunction(name, fn, min_args, max_args)
