"""
  :let, :unlet, :lockvar and :unlockvar

Targets are parsed with the expression parser (a name followed by
subscripts), so `let d.a[0] = 1` walks to the container with the
evaluator and assigns in place.
- Replacing a List item or an existing Dictionary entry checks the lock of
  that item; adding a Dictionary key or changing a List through `+=` checks
  the lock of the container.
- `let [a, b; rest] = list` unpacks, E687/E688 on a count mismatch.
"""

from __future__ import annotations

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
from viml.errors import (
    IndexOutOfRange,
    InvalidExpression,
    KeyNotPresent,
    LockedValue,
    VimError,
)
from viml.evaluation.evaluator import evaluate, index_value
from viml.evaluation.operators import apply_assignment
from viml.host.editor import VimCaret
from viml.host.registers import SelectionType
from viml.reader.expressions import (
    EnvVariableExpression,
    Expression,
    IndexExpression,
    MemberExpression,
    OptionExpression,
    RegisterExpression,
    SliceExpression,
    VariableExpression,
)
from viml.reader.parser import TokenStream, parse_expression
from viml.types.coercion import to_number, to_string, to_string_repr
from viml.types.context import ExecutionContext
from viml.types.environment import NoSuchVariable
from viml.types.values import (
    VimBlob,
    VimDictionary,
    VimInt,
    VimList,
    VimString,
    VimValue,
    detached,
)

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


VARIABLE_FLAGS = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_OPTIONAL, Access.READ_ONLY)


def read_target(stream: TokenStream) -> tuple[Expression, str]:
    """Next assignment target and its source text."""
    token = stream.peek()
    start = token.pos if token is not None else stream.position
    target = stream.parse_target()
    return target, stream.source[start:stream.position]


def parse_targets(text: str) -> list[tuple[Expression, str]]:
    """White-space separated targets of :unlet and :lockvar."""
    stream = TokenStream(text)
    targets: list[tuple[Expression, str]] = []
    while not stream.at_end():
        targets.append(read_target(stream))
    return targets


def _list_position(values: list[VimValue], index: VimValue) -> int:
    i = to_number(index)
    position = i + len(values) if i < 0 else i
    if not 0 <= position < len(values):
        raise IndexOutOfRange(f"List index out of range: {i}")
    return position


def _check_item(item: VimValue, name: str) -> None:
    if item.is_locked:
        raise LockedValue(f"Value is locked: {name}")


# -------------------------------
# Assignment
# -------------------------------
def assign(target: Expression, name: str, operator: str, value: VimValue,
           vim: Interpreter, context: ExecutionContext) -> None:
    """Store `value` into `target`; `operator` is '=' or a compound operator."""
    match target:
        case VariableExpression(variable=variable):
            if operator != "=":
                current = vim.variables.get(variable, context)
                if isinstance(current, (VimList, VimBlob)) and current.is_locked:
                    raise LockedValue(f"Value is locked: {variable}")
                value = apply_assignment(operator, current, value)
            vim.variables.store(variable, value, context)
        case OptionExpression(name=option):
            if operator != "=":
                value = apply_assignment(operator, vim.options.get_value(option), value)
            vim.options.set_value(option, value)
        case RegisterExpression(register=register_name):
            text = to_string(value)
            if operator != "=":
                register = vim.host.registers.get_register(register_name)
                text = to_string(apply_assignment(operator, VimString(register.text if register else ""), value))
            kind = SelectionType.LINE_WISE if text.endswith("\n") else SelectionType.CHARACTER_WISE
            vim.host.registers.store_text(register_name, text, kind)
        case EnvVariableExpression(name=env_name):
            if operator != "=":
                value = apply_assignment(operator, VimString(os.environ.get(env_name, "")), value)
            os.environ[env_name] = to_string(value)
        case IndexExpression(target=container_expr, index=index_expr):
            container = evaluate(container_expr, vim, context)
            _assign_item(container, evaluate(index_expr, vim, context), operator, value, name)
        case MemberExpression(target=container_expr, member=member):
            container = evaluate(container_expr, vim, context)
            if not isinstance(container, VimDictionary):
                raise VimError("Dot can only be used on a dictionary", "E1203")
            _assign_item(container, VimString(member), operator, value, name)
        case SliceExpression(target=container_expr, start=start, end=end):
            container = evaluate(container_expr, vim, context)
            first = evaluate(start, vim, context) if start is not None else None
            last = evaluate(end, vim, context) if end is not None else None
            _assign_slice(container, first, last, operator, value)
        case _:
            raise InvalidExpression(f"Invalid expression: \"{target}\"")


def _assign_item(container: VimValue, index: VimValue, operator: str, value: VimValue, name: str) -> None:
    match container:
        case VimList():
            position = _list_position(container.values, index)
            current = container.values[position]
            _check_item(current, name)
            if operator != "=":
                value = apply_assignment(operator, current, value)
            container.values[position] = value
        case VimDictionary():
            key = to_string(index)
            if key in container.dictionary:
                current = container.dictionary[key]
                if key in container.locked_keys:
                    raise LockedValue(f"Value is locked: {name}")
                _check_item(current, name)
                if operator != "=":
                    value = apply_assignment(operator, current, value)
            else:
                if operator != "=":
                    raise KeyNotPresent(f"Key not present in Dictionary: \"{key}\"")
                if container.is_locked:
                    raise LockedValue(f"Value is locked: {name}")
            container.dictionary[key] = value
        case VimBlob():
            if container.is_locked:
                raise LockedValue(f"Value is locked: {name}")
            i = to_number(index)
            position = i + len(container.data) if i < 0 else i
            # one past the end appends
            if not 0 <= position <= len(container.data):
                raise IndexOutOfRange(f"Blob index out of range: {i}", "E979")
            if operator != "=":
                current = index_value(container, index) if position < len(container.data) else VimInt(0)
                value = apply_assignment(operator, current, value)
            byte = to_number(value)
            if not 0 <= byte <= 255:
                raise VimError(f"Invalid value for blob: {byte}", "E1239")
            if position == len(container.data):
                container.data.append(byte)
            else:
                container.data[position] = byte
        case _:
            raise VimError("Can only index a List, Dictionary or Blob", "E689")


def _assign_slice(container: VimValue, start: VimValue | None, end: VimValue | None,
                  operator: str, value: VimValue) -> None:
    if not isinstance(container, VimList) or not isinstance(value, VimList):
        raise VimError("[:] requires a List or Blob value", "E709")
    length = len(container.values)
    first = to_number(start) if start is not None else 0
    if first < 0:
        first += length
    if not 0 <= first <= length:
        raise IndexOutOfRange(f"List index out of range: {first}")
    last = to_number(end) if end is not None else length - 1
    if last < 0:
        last += length
    count = max(last - first + 1, 0)
    items = list(value.values)
    if len(items) < count:
        raise VimError("List value has not enough items", "E711")
    if len(items) > count and end is not None:
        raise VimError("List value has too many items", "E710")
    for item in container.values[first:first + count]:
        _check_item(item, "[:]")
    if len(items) > count and container.is_locked:
        raise LockedValue("Value is locked: [:]")
    for offset, item in enumerate(items):
        position = first + offset
        if offset < count and operator != "=":
            item = apply_assignment(operator, container.values[position], item)
        if position < length:
            container.values[position] = item
        else:
            container.values.append(item)


def _unpack(targets: list[tuple[Expression, str]], rest: tuple[Expression, str] | None, operator: str,
            value: VimValue,
            vim: Interpreter, context: ExecutionContext) -> None:
    if not isinstance(value, VimList):
        raise VimError("List required", "E714")
    items = value.values
    if len(items) < len(targets):
        raise VimError("More targets than List items", "E688")
    if len(items) > len(targets) and rest is None:
        raise VimError("Less targets than List items", "E687")
    for (target, name), item in zip(targets, items):
        assign(target, name, operator, item, vim, context)
    if rest is not None:
        assign(*rest, operator, VimList(list(items[len(targets):])), vim, context)


class LetCommand(Command):
    """:let {var} = {expr}, :let {var} {op}= {expr}, :let [a, b] = {list}, :let {var}"""

    __slots__ = ()
    flags = VARIABLE_FLAGS

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        if not self.argument.strip():
            self._list_variables(vim)
            return ExecutionResult.SUCCESS
        stream = TokenStream(self.argument)
        targets: list[tuple[Expression, str]] = []
        rest: tuple[Expression, str] | None = None
        unpack = stream.is_op("[")
        if unpack:
            stream.advance()
            while not stream.is_op("]"):
                if stream.is_op(";"):
                    stream.advance()
                    rest = read_target(stream)
                    break
                targets.append(read_target(stream))
                if stream.is_op(","):
                    stream.advance()
            stream.expect_op("]")
        else:
            targets.append(read_target(stream))

        if stream.at_end():
            if unpack:
                raise stream.error()
            for target, name in targets:
                value = evaluate(target, vim, context)
                vim.host.messages.output(f"{name}\t{to_string_repr(value)}")
            return ExecutionResult.SUCCESS

        token = stream.advance()
        if token.kind != "assign":
            raise stream.error()
        value = evaluate(parse_expression(stream.remainder()), vim, context)
        if unpack:
            _unpack(targets, rest, token.text, value, vim, context)
        else:
            assign(*targets[0], token.text, value, vim, context)
        return ExecutionResult.SUCCESS

    @staticmethod
    def _list_variables(vim: Interpreter) -> None:
        for name, value in sorted(vim.variables.global_scope.dictionary.items()):
            vim.host.messages.output(f"{name}\t{to_string_repr(value)}")


# -------------------------------
# Removal and locks
# -------------------------------
def _remove(target: Expression, name: str, vim: Interpreter, context: ExecutionContext) -> None:
    match target:
        case VariableExpression(variable=variable):
            vim.variables.remove(variable, context)
        case EnvVariableExpression(name=env_name):
            os.environ.pop(env_name, None)
        case IndexExpression(target=container_expr, index=index_expr):
            container = evaluate(container_expr, vim, context)
            index = evaluate(index_expr, vim, context)
            match container:
                case VimList():
                    if container.is_locked:
                        raise LockedValue(f"Value is locked: {name}")
                    del container.values[_list_position(container.values, index)]
                case VimDictionary():
                    _remove_key(container, to_string(index), name)
                case _:
                    raise VimError("Can only index a List, Dictionary or Blob", "E689")
        case MemberExpression(target=container_expr, member=member):
            container = evaluate(container_expr, vim, context)
            if not isinstance(container, VimDictionary):
                raise VimError("Dot can only be used on a dictionary", "E1203")
            _remove_key(container, member, name)
        case SliceExpression(target=container_expr, start=start, end=end):
            container = evaluate(container_expr, vim, context)
            if not isinstance(container, VimList):
                raise VimError("Can only index a List, Dictionary or Blob", "E689")
            if container.is_locked:
                raise LockedValue(f"Value is locked: {name}")
            length = len(container.values)
            first = to_number(evaluate(start, vim, context)) if start is not None else 0
            last = to_number(evaluate(end, vim, context)) if end is not None else length - 1
            first = first + length if first < 0 else first
            last = last + length if last < 0 else last
            del container.values[first:last + 1]
        case _:
            raise InvalidExpression(f"Invalid expression: \"{name}\"")


def _remove_key(container: VimDictionary, key: str, name: str) -> None:
    if key not in container.dictionary:
        raise KeyNotPresent(f"Key not present in Dictionary: \"{key}\"")
    if container.is_locked or key in container.locked_keys:
        raise LockedValue(f"Value is locked: {name}")
    del container.dictionary[key]


class UnletCommand(Command):
    """:unlet[!] {name} ...; with ! a missing variable is not an error."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_REQUIRED, Access.READ_ONLY)
    accepts_bang = True

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        for target, name in parse_targets(self.argument):
            try:
                _remove(target, name, vim, context)
            except (NoSuchVariable, KeyNotPresent):
                if not self.bang:
                    raise
        return ExecutionResult.SUCCESS


class LockvarCommand(Command):
    """:lockvar[!] [depth] {name} ...; the default depth is 2, ! locks everything."""

    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_FORBIDDEN, ArgumentFlag.ARGUMENT_REQUIRED, Access.READ_ONLY)
    accepts_bang = True
    lock = True

    def _depth_and_names(self) -> tuple[int, str]:
        text = self.argument.strip()
        if self.bang:
            return -1, text
        head, _, tail = text.partition(" ")
        if head.isdigit():
            return int(head), tail
        return 2, text

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        depth, names = self._depth_and_names()
        targets = parse_targets(names)
        if not targets:
            raise VimError("Argument required", "E471")
        for target, name in targets:
            self._apply(target, name, depth, vim, context)
        return ExecutionResult.SUCCESS

    def _apply(self, target: Expression, name: str, depth: int, vim: Interpreter,
               context: ExecutionContext) -> None:
        match target:
            case VariableExpression(variable=variable):
                if not vim.variables.exists(variable, context):
                    raise NoSuchVariable(f"No such variable: \"{variable}\"")
                if self.lock:
                    vim.variables.lock(variable, depth, context)
                else:
                    vim.variables.unlock(variable, depth, context)
                return
            case MemberExpression(target=container_expr, member=member):
                container = evaluate(container_expr, vim, context)
                key: VimValue = VimString(member)
            case IndexExpression(target=container_expr, index=index_expr):
                container = evaluate(container_expr, vim, context)
                key = evaluate(index_expr, vim, context)
            case _:
                raise InvalidExpression(f"Invalid expression: \"{name}\"")
        if isinstance(container, VimDictionary):
            binding = to_string(key)
            if binding not in container.dictionary:
                raise KeyNotPresent(f"Key not present in Dictionary: \"{binding}\"")
            if self.lock:
                container.locked_keys.add(binding)
            else:
                container.locked_keys.discard(binding)
            value = container.dictionary[binding] = detached(container.dictionary[binding])
        elif isinstance(container, VimList):
            index_value(container, key)
            i = to_number(key)
            position = i + len(container.values) if i < 0 else i
            value = container.values[position] = detached(container.values[position])
        else:
            value = index_value(container, key)
        if depth != 0:
            if self.lock:
                value.lock_var(depth, name)
            else:
                value.unlock_var(depth)


class UnlockvarCommand(LockvarCommand):
    __slots__ = ()
    lock = False


COMMANDS = [
    ("let", "", LetCommand),
    ("unl", "et", UnletCommand),
    ("lockv", "ar", LockvarCommand),
    ("unlo", "ckvar", UnlockvarCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
