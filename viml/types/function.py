"""Function handlers: builtins, user-defined functions and lambdas."""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO
from typing import TYPE_CHECKING, Any, Callable

from viml.errors import VimError
from viml.types.values import VimDictionary, VimValue

if TYPE_CHECKING:
    from viml.reader.expressions import Expression
    from viml.types.context import FunctionFrame


class FunctionHandler:
    """Anything a Funcref can point at; `max_args` None means varargs."""

    __slots__ = ()

    name: str
    min_args: int
    max_args: int | None


class BuiltinFunction(FunctionHandler):
    __slots__ = ("name", "fn", "min_args", "max_args")

    def __init__(self, name: str, fn: Callable[..., VimValue], min_args: int, max_args: int | None):
        self.name = name
        self.fn = fn
        self.min_args = min_args
        self.max_args = max_args

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"


class FunctionDeclaration(FunctionHandler):
    """A :function definition."""

    __slots__ = (
        "name",
        "params",
        "has_varargs",
        "body",
        "is_dict",
        "is_abort",
        "is_range",
        "is_closure",
        "script",
        "closure",
    )

    def __init__(
        self,
        name: str,
        params: list[str],
        body: list[Any],
        has_varargs: bool = False,
        is_dict: bool = False,
        is_abort: bool = False,
        is_range: bool = False,
        is_closure: bool = False,
        script: VimDictionary | None = None,
        closure: FunctionFrame | None = None,
    ):
        self.name = name
        self.params = params
        self.body = body
        self.has_varargs = has_varargs
        self.is_dict = is_dict
        self.is_abort = is_abort
        self.is_range = is_range
        self.is_closure = is_closure
        self.script = script
        self.closure = closure

    @property
    def min_args(self) -> int:
        return len(self.params)

    @property
    def max_args(self) -> int | None:
        return None if self.has_varargs else len(self.params)

    def __str__(self) -> str:
        with StringIO() as buffer:
            buffer.write(f"function {self.name}(")
            params = list(self.params) + (["..."] if self.has_varargs else [])
            buffer.write(", ".join(params))
            buffer.write(")")
            for flag, enabled in (("range", self.is_range), ("abort", self.is_abort),
                                  ("dict", self.is_dict), ("closure", self.is_closure)):
                if enabled:
                    buffer.write(f" {flag}")
            return buffer.getvalue()


class Lambda(FunctionHandler):
    """{args -> expr}; captures the frame it was created in."""

    __slots__ = ("name", "params", "body", "closure", "script")

    def __init__(
        self,
        name: str,
        params: list[str],
        body: Expression,
        closure: FunctionFrame | None,
        script: VimDictionary | None,
    ):
        self.name = name
        self.params = params
        self.body = body
        self.closure = closure
        self.script = script

    @property
    def min_args(self) -> int:
        return len(self.params)

    @property
    def max_args(self) -> int | None:
        return len(self.params)

    def __str__(self) -> str:
        return f"{{{', '.join(self.params)} -> ...}}"


class FunctionAlreadyExists(VimError):
    """ Raised when redefining a function without :function!"""
    code = "E122"


@dataclass
class FunctionTable:
    """User-defined functions plus the counters naming lambdas and numbered functions."""

    functions: dict[str, FunctionDeclaration] = field(default_factory=dict)
    lambda_count: int = 0
    anonymous_count: int = 0

    def define(self, declaration: FunctionDeclaration, replace: bool) -> None:
        if declaration.name in self.functions and not replace:
            raise FunctionAlreadyExists(f"Function {declaration.name} already exists, add ! to replace it")
        self.functions[declaration.name] = declaration

    def find(self, name: str) -> FunctionDeclaration | None:
        return self.functions.get(name)

    def remove(self, name: str) -> bool:
        return self.functions.pop(name, None) is not None

    def next_lambda_name(self) -> str:
        self.lambda_count += 1
        return f"<lambda>{self.lambda_count}"

    def next_anonymous_name(self) -> str:
        self.anonymous_count += 1
        return str(self.anonymous_count)
