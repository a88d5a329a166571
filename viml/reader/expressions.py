"""Expression syntax tree produced by the parser.

Nodes are immutable and hold plain Python data; literal nodes build fresh
runtime values every time they are evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass

from viml.evaluation.operators import BinaryOperator, CaseRule, UnaryOperator
from viml.types.environment import Variable


class Expression:
    """Base class of all expression nodes."""
    __slots__ = ()


@dataclass(frozen=True)
class NumberLiteral(Expression):
    value: int


@dataclass(frozen=True)
class FloatLiteral(Expression):
    value: float


@dataclass(frozen=True)
class StringLiteral(Expression):
    value: str


@dataclass(frozen=True)
class BlobLiteral(Expression):
    data: bytes


@dataclass(frozen=True)
class ListLiteral(Expression):
    items: tuple[Expression, ...]


@dataclass(frozen=True)
class DictionaryLiteral(Expression):
    entries: tuple[tuple[Expression, Expression], ...]


@dataclass(frozen=True)
class VariableExpression(Expression):
    """A variable reference; an empty name denotes the scope dictionary (g:)."""
    variable: Variable

    @property
    def name(self) -> str:
        return str(self.variable)


@dataclass(frozen=True)
class OptionExpression(Expression):
    name: str


@dataclass(frozen=True)
class RegisterExpression(Expression):
    register: str


@dataclass(frozen=True)
class EnvVariableExpression(Expression):
    name: str


@dataclass(frozen=True)
class IndexExpression(Expression):
    target: Expression
    index: Expression


@dataclass(frozen=True)
class SliceExpression(Expression):
    target: Expression
    start: Expression | None
    end: Expression | None


@dataclass(frozen=True)
class MemberExpression(Expression):
    """`target.name`: a Dictionary entry, or concatenation when target is not a Dictionary."""
    target: Expression
    member: str


@dataclass(frozen=True)
class FunctionCall(Expression):
    """`Name(args)`: builtin, user function or variable holding a Funcref."""
    name: str
    args: tuple[Expression, ...]


@dataclass(frozen=True)
class CallExpression(Expression):
    """Call of a computed Funcref: `d.method()`, `list[0]()`, `F(x)(y)`."""
    callee: Expression
    args: tuple[Expression, ...]


@dataclass(frozen=True)
class MethodCall(Expression):
    """`target->name(args)` or `target->{lambda}(args)`; target becomes the first argument."""
    target: Expression
    name: str | None
    args: tuple[Expression, ...]
    callee: Expression | None = None


@dataclass(frozen=True)
class LambdaExpression(Expression):
    params: tuple[str, ...]
    body: Expression


@dataclass(frozen=True)
class UnaryExpression(Expression):
    op: UnaryOperator
    operand: Expression


@dataclass(frozen=True)
class BinaryExpression(Expression):
    op: BinaryOperator
    lhs: Expression
    rhs: Expression
    case: CaseRule = CaseRule.DEFAULT


@dataclass(frozen=True)
class TernaryExpression(Expression):
    condition: Expression
    then: Expression
    otherwise: Expression


@dataclass(frozen=True)
class FalsyExpression(Expression):
    """`lhs ?? rhs`"""
    lhs: Expression
    rhs: Expression
