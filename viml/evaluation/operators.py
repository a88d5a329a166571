"""Binary and unary operators over runtime values.

`apply` implements the coercion matrix for arithmetic, concatenation,
comparison, pattern matching and bit shifts. Logical `&&`/`||`, the ternary
and `??` short-circuit and are therefore handled by the evaluator.
"""

from __future__ import annotations

from enum import Enum

from viml.errors import InvalidOperation, WrongVariableType
from viml.evaluation.regex import compile_pattern
from viml.types.coercion import string_to_number, to_float, to_number, to_string
from viml.types.values import (
    INT_MAX,
    INT_MIN,
    VimBlob,
    VimDictionary,
    VimFloat,
    VimFuncref,
    VimInt,
    VimList,
    VimString,
    VimValue,
    reference_equals,
    structural_equals,
    wrap32,
)


class BinaryOperator(Enum):
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"
    CONCATENATION = ".."
    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER = ">"
    GREATER_OR_EQUALS = ">="
    LESS = "<"
    LESS_OR_EQUALS = "<="
    MATCHES = "=~"
    NOT_MATCHES = "!~"
    IS = "is"
    IS_NOT = "isnot"
    SHIFT_LEFT = "<<"
    SHIFT_RIGHT = ">>"
    LOGICAL_AND = "&&"
    LOGICAL_OR = "||"

    @classmethod
    def from_symbol(cls, symbol: str) -> BinaryOperator:
        if symbol == ".":
            return cls.CONCATENATION
        return cls(symbol)

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_OPERATORS


COMPARISON_OPERATORS = frozenset({
    BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS, BinaryOperator.GREATER,
    BinaryOperator.GREATER_OR_EQUALS, BinaryOperator.LESS, BinaryOperator.LESS_OR_EQUALS,
    BinaryOperator.MATCHES, BinaryOperator.NOT_MATCHES, BinaryOperator.IS, BinaryOperator.IS_NOT,
})

ARITHMETIC_OPERATORS = frozenset({
    BinaryOperator.ADD, BinaryOperator.SUBTRACT, BinaryOperator.MULTIPLY,
    BinaryOperator.DIVIDE, BinaryOperator.MODULO,
})


class CaseRule(Enum):
    """Suffix of a comparison operator: none follows 'ignorecase', # matches case, ? ignores it."""
    DEFAULT = ""
    MATCH_CASE = "#"
    IGNORE_CASE = "?"

    def resolve(self, ignorecase_option: bool) -> bool:
        if self is CaseRule.MATCH_CASE:
            return False
        if self is CaseRule.IGNORE_CASE:
            return True
        return ignorecase_option


class UnaryOperator(Enum):
    NOT = "!"
    MINUS = "-"
    PLUS = "+"


def _numeric(value: VimValue) -> int:
    match value:
        case VimInt():
            return value.value
        case VimString():
            return string_to_number(value.value)
        case _:
            return to_number(value)


def _divide(a: int, b: int) -> int:
    if b == 0:
        if a == 0:
            return INT_MIN
        return INT_MAX if a > 0 else -INT_MAX
    q = abs(a) // abs(b)
    return wrap32(q if (a < 0) == (b < 0) else -q)


def _modulo(a: int, b: int) -> int:
    if b == 0:
        return 0
    q = abs(a) // abs(b)
    q = q if (a < 0) == (b < 0) else -q
    return wrap32(a - b * q)


def _float_divide(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or a != a:
            return float("nan")
        return float("inf") if a > 0 else float("-inf")
    return a / b


def arithmetic(op: BinaryOperator, lhs: VimValue, rhs: VimValue) -> VimValue:
    if op is BinaryOperator.ADD:
        if isinstance(lhs, VimList) and isinstance(rhs, VimList):
            return VimList(lhs.values + rhs.values)
        if isinstance(lhs, VimBlob) and isinstance(rhs, VimBlob):
            return VimBlob(lhs.data + rhs.data)
    if isinstance(lhs, VimFloat) or isinstance(rhs, VimFloat):
        # a String never becomes a Float
        a, b = to_float(lhs), to_float(rhs)
        match op:
            case BinaryOperator.ADD:
                return VimFloat(a + b)
            case BinaryOperator.SUBTRACT:
                return VimFloat(a - b)
            case BinaryOperator.MULTIPLY:
                return VimFloat(a * b)
            case BinaryOperator.DIVIDE:
                return VimFloat(_float_divide(a, b))
            case BinaryOperator.MODULO:
                raise InvalidOperation("Cannot use '%' with Float", "E804")
    a = _numeric(lhs)
    b = _numeric(rhs)
    match op:
        case BinaryOperator.ADD:
            return VimInt(a + b)
        case BinaryOperator.SUBTRACT:
            return VimInt(a - b)
        case BinaryOperator.MULTIPLY:
            return VimInt(a * b)
        case BinaryOperator.DIVIDE:
            return VimInt(_divide(a, b))
        case BinaryOperator.MODULO:
            return VimInt(_modulo(a, b))
    raise InvalidOperation(f"Invalid expression: \"{op.value}\"")


def concatenate(lhs: VimValue, rhs: VimValue) -> VimString:
    return VimString(to_string(lhs) + to_string(rhs))


def shift(op: BinaryOperator, lhs: VimValue, rhs: VimValue) -> VimInt:
    """Bit shift; only Numbers are accepted, amounts of 32 or more shift everything out."""
    if not isinstance(lhs, VimInt) or not isinstance(rhs, VimInt):
        raise InvalidOperation("bitshift operands must be numbers", "E1282")
    if rhs.value < 0:
        raise InvalidOperation("bitshift amount must be a positive number", "E1283")
    if op is BinaryOperator.SHIFT_LEFT:
        if rhs.value >= 32:
            return VimInt(0)
        return VimInt(lhs.value << rhs.value)
    if rhs.value >= 32:
        return VimInt(-1 if lhs.value < 0 else 0)
    return VimInt(lhs.value >> rhs.value)


def _ordering(op: BinaryOperator, a, b) -> bool:
    match op:
        case BinaryOperator.EQUALS:
            return a == b
        case BinaryOperator.NOT_EQUALS:
            return a != b
        case BinaryOperator.GREATER:
            return a > b
        case BinaryOperator.GREATER_OR_EQUALS:
            return a >= b
        case BinaryOperator.LESS:
            return a < b
        case BinaryOperator.LESS_OR_EQUALS:
            return a <= b
    raise InvalidOperation(f"Invalid expression: \"{op.value}\"")


def _is_same(lhs: VimValue, rhs: VimValue, ignore_case: bool) -> bool:
    if isinstance(lhs, VimString) and isinstance(rhs, VimString) and ignore_case:
        return lhs.value.lower() == rhs.value.lower()
    return reference_equals(lhs, rhs)


def compare(op: BinaryOperator, lhs: VimValue, rhs: VimValue, ignore_case: bool = False) -> bool:
    """Evaluate a comparison operator; `ignore_case` is the already resolved case rule."""
    if op is BinaryOperator.IS:
        return _is_same(lhs, rhs, ignore_case)
    if op is BinaryOperator.IS_NOT:
        return not _is_same(lhs, rhs, ignore_case)

    if isinstance(lhs, VimList) or isinstance(rhs, VimList):
        if not (isinstance(lhs, VimList) and isinstance(rhs, VimList)):
            raise InvalidOperation("Can only compare List with List", "E691")
        if op not in (BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS):
            raise InvalidOperation("Invalid operation for List", "E692")
        return structural_equals(lhs, rhs, ignore_case) == (op is BinaryOperator.EQUALS)

    if isinstance(lhs, VimDictionary) or isinstance(rhs, VimDictionary):
        if not (isinstance(lhs, VimDictionary) and isinstance(rhs, VimDictionary)):
            raise InvalidOperation("Can only compare Dictionary with Dictionary", "E735")
        if op not in (BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS):
            raise InvalidOperation("Invalid operation for Dictionary", "E736")
        return structural_equals(lhs, rhs, ignore_case) == (op is BinaryOperator.EQUALS)

    if isinstance(lhs, VimFuncref) or isinstance(rhs, VimFuncref):
        if op not in (BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS):
            raise InvalidOperation("Invalid operation for Funcrefs", "E694")
        equal = structural_equals(lhs, rhs)
        return equal == (op is BinaryOperator.EQUALS)

    if isinstance(lhs, VimBlob) or isinstance(rhs, VimBlob):
        if not (isinstance(lhs, VimBlob) and isinstance(rhs, VimBlob)):
            raise InvalidOperation("Can only compare Blob with Blob", "E977")
        if op not in (BinaryOperator.EQUALS, BinaryOperator.NOT_EQUALS):
            raise InvalidOperation("Invalid operation for Blob", "E978")
        return (lhs.data == rhs.data) == (op is BinaryOperator.EQUALS)

    if op in (BinaryOperator.MATCHES, BinaryOperator.NOT_MATCHES):
        pattern = compile_pattern(to_string(rhs), ignore_case)
        found = pattern.search(to_string(lhs)) is not None
        return found == (op is BinaryOperator.MATCHES)

    if isinstance(lhs, VimFloat) or isinstance(rhs, VimFloat):
        return _ordering(op, to_float(lhs), to_float(rhs))

    if isinstance(lhs, VimString) and isinstance(rhs, VimString):
        a, b = lhs.value, rhs.value
        if ignore_case:
            a, b = a.lower(), b.lower()
        return _ordering(op, a, b)

    return _ordering(op, _numeric(lhs), _numeric(rhs))


def apply(op: BinaryOperator, lhs: VimValue, rhs: VimValue, ignore_case: bool = False) -> VimValue:
    """Apply a non short-circuit binary operator."""
    if op in ARITHMETIC_OPERATORS:
        return arithmetic(op, lhs, rhs)
    if op is BinaryOperator.CONCATENATION:
        return concatenate(lhs, rhs)
    if op in (BinaryOperator.SHIFT_LEFT, BinaryOperator.SHIFT_RIGHT):
        return shift(op, lhs, rhs)
    if op in COMPARISON_OPERATORS:
        return VimInt(1 if compare(op, lhs, rhs, ignore_case) else 0)
    raise InvalidOperation(f"Invalid expression: \"{op.value}\"")


def apply_unary(op: UnaryOperator, value: VimValue) -> VimValue:
    match op:
        case UnaryOperator.NOT:
            if isinstance(value, VimFloat):
                return VimInt(1 if value.value == 0.0 else 0)
            return VimInt(1 if to_number(value) == 0 else 0)
        case UnaryOperator.MINUS:
            if isinstance(value, VimFloat):
                return VimFloat(-value.value)
            return VimInt(-to_number(value))
        case UnaryOperator.PLUS:
            if isinstance(value, VimFloat):
                return VimFloat(value.value)
            return VimInt(to_number(value))


# -------------------------------
# Compound assignment (let x += y)
# -------------------------------
ASSIGNMENT_OPERATORS = {
    "+=": BinaryOperator.ADD,
    "-=": BinaryOperator.SUBTRACT,
    "*=": BinaryOperator.MULTIPLY,
    "/=": BinaryOperator.DIVIDE,
    "%=": BinaryOperator.MODULO,
    ".=": BinaryOperator.CONCATENATION,
    "..=": BinaryOperator.CONCATENATION,
}


def apply_assignment(operator: str, current: VimValue, value: VimValue) -> VimValue:
    """Result of `let x {operator} value`.

    `List += List` and `Blob += Blob` extend the left value in place, so other
    references to it observe the change. Every other container operand, a
    Float with %= and a Float with .= raise E734.
    """
    op = ASSIGNMENT_OPERATORS[operator]
    if op is BinaryOperator.ADD:
        if isinstance(current, VimList) and isinstance(value, VimList):
            current.values.extend(list(value.values))
            return current
        if isinstance(current, VimBlob) and isinstance(value, VimBlob):
            current.data.extend(value.data)
            return current
    for operand in (current, value):
        if isinstance(operand, (VimList, VimDictionary, VimBlob, VimFuncref)):
            raise WrongVariableType(f"Wrong variable type for {operator}")
        if isinstance(operand, VimFloat) and op in (BinaryOperator.MODULO, BinaryOperator.CONCATENATION):
            raise WrongVariableType(f"Wrong variable type for {operator}")
    return apply(op, current, value)

