"""Variable storage for the script runtime.

Variables live in scope dictionaries: g: (global), s: (script), l: and a:
(per function frame), b:/w:/t: (buffer, window and tab page) and v: (Vim's
predefined variables). Every scope is an ordinary VimDictionary, so `g:`
can also be used as a value in expressions.

An unqualified name refers to l: inside a function and to g: elsewhere.
Lambdas additionally see their own arguments and the locals of the frames
they close over.

Binding locks (:lockvar) are kept per key in the scope dictionary; locks of
depth 1 and more are also applied to the value itself.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from io import StringIO
from typing import Iterator
import re

from viml.errors import (
    IllegalVariableName,
    LockedValue,
    ReadOnlyVariable,
    UndefinedVariable,
    VimError,
)
from viml.types.context import ExecutionContext
from viml.types.values import (
    INT_MAX,
    INT_MIN,
    Undefined,
    UndefinedType,
    VimDictionary,
    VimInt,
    VimString,
    VimValue,
    detached,
)

NAME_RE = re.compile(r"^(?:(?P<scope>[gslabwtv]):)?(?P<name>[A-Za-z_][A-Za-z0-9_]*|[0-9]+|)$")

# v: variables scripts may assign to
WRITABLE_VIM_VARIABLES = frozenset({"errmsg", "searchforward", "hlsearch", "statusmsg", "warningmsg"})


class Scope(Enum):
    GLOBAL = "g"
    SCRIPT = "s"
    LOCAL = "l"
    FUNCTION_ARGUMENT = "a"
    BUFFER = "b"
    WINDOW = "w"
    TABPAGE = "t"
    VIM = "v"


@dataclass(frozen=True)
class Variable:
    scope: Scope | None
    name: str

    def __str__(self) -> str:
        if self.scope is None:
            return self.name
        return f"{self.scope.value}:{self.name}"

    @classmethod
    def parse(cls, text: str) -> Variable:
        """Split `g:name` into scope and name; raises E461 for malformed names."""
        m = NAME_RE.match(text)
        if m is None or (not m.group("name") and m.group("scope") is None):
            raise IllegalVariableName(f"Illegal variable name: {text}")
        scope = Scope(m.group("scope")) if m.group("scope") else None
        if scope is not Scope.FUNCTION_ARGUMENT and m.group("name").isdigit():
            raise IllegalVariableName(f"Illegal variable name: {text}")
        return cls(scope, m.group("name"))


class NoSuchVariable(VimError):
    """ Raised by :unlet and :lockvar on a variable that does not exist"""
    code = "E108"


def default_vim_variables() -> dict[str, VimValue]:
    return {
        "true": VimInt(1),
        "false": VimInt(0),
        "null": VimInt(0),
        "count": VimInt(0),
        "count1": VimInt(1),
        "errmsg": VimString(""),
        "exception": VimString(""),
        "throwpoint": VimString(""),
        "statusmsg": VimString(""),
        "warningmsg": VimString(""),
        "searchforward": VimInt(1),
        "hlsearch": VimInt(0),
        "version": VimInt(900),
        "numbermax": VimInt(INT_MAX),
        "numbermin": VimInt(INT_MIN),
        "numbersize": VimInt(32),
        "t_number": VimInt(0),
        "t_string": VimInt(1),
        "t_func": VimInt(2),
        "t_list": VimInt(3),
        "t_dict": VimInt(4),
        "t_float": VimInt(5),
        "t_blob": VimInt(10),
    }


class VariableStore:
    """Scoped variable bindings with binding locks and read-only scopes."""

    __slots__ = ("global_scope", "buffer_scope", "window_scope", "tab_scope", "vim_scope")

    def __init__(self):
        self.global_scope = VimDictionary()
        self.buffer_scope = VimDictionary()
        self.window_scope = VimDictionary()
        self.tab_scope = VimDictionary()
        self.vim_scope = VimDictionary(default_vim_variables())

    def scope_dictionary(self, scope: Scope, context: ExecutionContext) -> VimDictionary:
        """The dictionary holding `scope` in the given context.

        Raises E461 for s: outside a script and l:/a: outside a function.
        """
        match scope:
            case Scope.GLOBAL:
                return self.global_scope
            case Scope.BUFFER:
                return self.buffer_scope
            case Scope.WINDOW:
                return self.window_scope
            case Scope.TABPAGE:
                return self.tab_scope
            case Scope.VIM:
                return self.vim_scope
            case Scope.SCRIPT:
                if context.script is None:
                    raise IllegalVariableName("Illegal variable name: s:")
                return context.script
            case Scope.LOCAL:
                if context.frame is None:
                    raise IllegalVariableName("Illegal variable name: l:")
                return context.frame.local
            case Scope.FUNCTION_ARGUMENT:
                if context.frame is None:
                    raise IllegalVariableName("Illegal variable name: a:")
                return context.frame.arguments

    def _target(self, variable: Variable, context: ExecutionContext) -> VimDictionary:
        if variable.scope is None:
            if context.frame is not None:
                return context.frame.local
            return self.global_scope
        try:
            return self.scope_dictionary(variable.scope, context)
        except IllegalVariableName:
            raise IllegalVariableName(f"Illegal variable name: {variable}") from None

    def lookup(self, variable: Variable, context: ExecutionContext) -> VimValue | UndefinedType:
        """Value bound to `variable`, or Undefined."""
        if variable.scope is None and context.frame is not None:
            frame = context.frame
            while frame is not None:
                if variable.name in frame.local.dictionary:
                    return frame.local.dictionary[variable.name]
                if not frame.is_lambda:
                    # a function frame only continues outwards when it is a closure
                    if frame.outer is None:
                        return Undefined
                elif variable.name in frame.arguments.dictionary:
                    return frame.arguments.dictionary[variable.name]
                frame = frame.outer
            return self.global_scope.dictionary.get(variable.name, Undefined)
        return self._target(variable, context).dictionary.get(variable.name, Undefined)

    def get(self, variable: Variable, context: ExecutionContext) -> VimValue:
        """Value bound to `variable`; raises E121 when it is not defined."""
        value = self.lookup(variable, context)
        if value is Undefined:
            raise UndefinedVariable(f"Undefined variable: {variable}")
        return value

    def exists(self, variable: Variable, context: ExecutionContext) -> bool:
        try:
            return self.lookup(variable, context) is not Undefined
        except IllegalVariableName:
            return False

    def _check_writable(self, variable: Variable, scope_dict: VimDictionary) -> None:
        if variable.scope is Scope.FUNCTION_ARGUMENT or (
            variable.scope is Scope.VIM and variable.name not in WRITABLE_VIM_VARIABLES
        ):
            raise ReadOnlyVariable(f'Cannot change read-only variable "{variable}"')
        if variable.name in scope_dict.locked_keys:
            raise LockedValue(f"Value is locked: {variable}")

    def store(self, variable: Variable, value: VimValue, context: ExecutionContext) -> None:
        """Bind `variable` to `value`.

        Raises E46 for read-only variables and E741 for a locked binding.
        """
        scope_dict = self._target(variable, context)
        self._check_writable(variable, scope_dict)
        scope_dict.dictionary[variable.name] = value

    def remove(self, variable: Variable, context: ExecutionContext) -> None:
        """:unlet; raises E108 when the variable does not exist."""
        scope_dict = self._target(variable, context)
        if variable.name not in scope_dict.dictionary:
            raise NoSuchVariable(f"No such variable: \"{variable}\"")
        self._check_writable(variable, scope_dict)
        value = scope_dict.dictionary[variable.name]
        if value.is_locked and value.lock_owner == str(variable):
            raise LockedValue(f"Value is locked: {variable}")
        del scope_dict.dictionary[variable.name]

    def lock(self, variable: Variable, depth: int, context: ExecutionContext) -> None:
        """:lockvar; depth 0 locks only the binding, negative locks everything."""
        scope_dict = self._target(variable, context)
        value = self.get(variable, context)
        scope_dict.locked_keys.add(variable.name)
        if depth != 0:
            value = scope_dict.dictionary[variable.name] = detached(value)
            value.lock_var(depth, str(variable))

    def unlock(self, variable: Variable, depth: int, context: ExecutionContext) -> None:
        scope_dict = self._target(variable, context)
        value = self.get(variable, context)
        scope_dict.locked_keys.discard(variable.name)
        if depth != 0:
            value = scope_dict.dictionary[variable.name] = detached(value)
            value.unlock_var(depth)

    def is_locked(self, variable: Variable, context: ExecutionContext) -> bool:
        scope_dict = self._target(variable, context)
        value = self.get(variable, context)
        return variable.name in scope_dict.locked_keys or value.is_locked

    def set_vim_variable(self, name: str, value: VimValue) -> None:
        """Set a v: variable from the runtime itself, bypassing the read-only check."""
        self.vim_scope.dictionary[name] = value

    @contextmanager
    def callback_variables(self, key: VimValue, value: VimValue) -> Iterator[None]:
        """Expose v:key and v:val for one callback invocation."""
        saved = {name: self.vim_scope.dictionary.get(name) for name in ("key", "val")}
        self.vim_scope.dictionary["key"] = key
        self.vim_scope.dictionary["val"] = value
        try:
            yield
        finally:
            for name, previous in saved.items():
                if previous is None:
                    self.vim_scope.dictionary.pop(name, None)
                else:
                    self.vim_scope.dictionary[name] = previous

    def __str__(self) -> str:
        with StringIO() as buffer:
            buffer.write("{")
            buffer.write(", ".join(f"g:{name}" for name in self.global_scope.dictionary))
            buffer.write("}")
            return buffer.getvalue()
