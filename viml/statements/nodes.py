"""Statement tree produced by the script parser.

Conditions and other expressions are kept as source text and parsed when
the statement runs, so an error in a branch that is never taken is never
reported. Plain command lines are kept as `CommandLine` text for the same
reason.
"""

from __future__ import annotations

from dataclasses import dataclass


class Statement:
    __slots__ = ()


Block = tuple[Statement, ...]


@dataclass(frozen=True)
class CommandLine(Statement):
    text: str


@dataclass(frozen=True)
class IfStatement(Statement):
    branches: tuple[tuple[str, Block], ...]
    otherwise: Block | None = None


@dataclass(frozen=True)
class WhileLoop(Statement):
    condition: str
    body: Block


@dataclass(frozen=True)
class ForLoop(Statement):
    """for {var} in {expr} or for [{a}, {b}] in {expr}"""
    targets: tuple[str, ...]
    unpack: bool
    iterable: str
    body: Block


@dataclass(frozen=True)
class TryStatement(Statement):
    body: Block
    catches: tuple[tuple[str | None, Block], ...] = ()
    finally_body: Block | None = None


@dataclass(frozen=True)
class FunctionDefinition(Statement):
    name: str
    params: tuple[str, ...]
    body: Block
    has_varargs: bool = False
    is_range: bool = False
    is_abort: bool = False
    is_dict: bool = False
    is_closure: bool = False
    replace: bool = False


@dataclass(frozen=True)
class FunctionListing(Statement):
    """:function without a body: list all functions or show one."""
    name: str | None


@dataclass(frozen=True)
class DeleteFunction(Statement):
    name: str
    bang: bool = False


@dataclass(frozen=True)
class ReturnStatement(Statement):
    expression: str | None = None


@dataclass(frozen=True)
class ThrowStatement(Statement):
    expression: str


@dataclass(frozen=True)
class BreakStatement(Statement):
    pass


@dataclass(frozen=True)
class ContinueStatement(Statement):
    pass


@dataclass(frozen=True)
class FinishStatement(Statement):
    pass
