import math

import pytest
from hypothesis import given, strategies as st

from viml.errors import InvalidOperation, TypeCoercionError, WrongVariableType
from viml.evaluation.operators import (
    BinaryOperator,
    apply,
    apply_assignment,
    compare,
)
from viml.types.values import (
    INT_MAX,
    INT_MIN,
    VimDictionary,
    VimFloat,
    VimInt,
    VimList,
    VimString,
    wrap32,
)


@pytest.mark.parametrize(
    "source,expected",
    [
        ("1 + 2 * 3", VimInt(7)),
        ("(1 + 2) * 3", VimInt(9)),
        ("7 / 2", VimInt(3)),
        ("-7 / 2", VimInt(-3)),
        ("7 % -3", VimInt(1)),
        ("-7 % 3", VimInt(-1)),
        ("1 / 0", VimInt(INT_MAX)),
        ("-1 / 0", VimInt(-INT_MAX)),
        ("0 / 0", VimInt(INT_MIN)),
        ("5 % 0", VimInt(0)),
        ("1.5 + 1", VimFloat(2.5)),
        ("'3' + 4", VimInt(7)),
        ("'abc' + 1", VimInt(1)),
        ("'a' .. 1", VimString("a1")),
        ("'a' . 'b'", VimString("ab")),
        ("1 << 31", VimInt(INT_MIN)),
        ("1 << 32", VimInt(0)),
        ("-8 >> 1", VimInt(-4)),
        ("2147483647 + 1", VimInt(INT_MIN)),
        ("!0", VimInt(1)),
        ("!'x'", VimInt(1)),
        ("-'5'", VimInt(-5)),
        ("1 ? 'yes' : 'no'", VimString("yes")),
        ("'' ?? 'default'", VimString("default")),
        ("0 || 2", VimInt(1)),
        ("1 && 0", VimInt(0)),
    ],
)
def test_arithmetic_and_logic(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_float_division_by_zero(vim):
    assert vim.evaluate("1.0 / 0").value == math.inf
    assert vim.evaluate("-1.0 / 0").value == -math.inf
    assert math.isnan(vim.evaluate("0.0 / 0").value)


@pytest.mark.parametrize(
    "source,code",
    [
        ("1.5 % 2", "E804"),
        ("'3' + 1.5", "E892"),
        ("1.5 * '2'", "E892"),
        ("'' - 0.5", "E892"),
        ("[1] + 1", "E745"),
        ("{} + 1", "E728"),
        ("1.5 .. 'x'", "E806"),
        ("[1] == 1", "E691"),
        ("[1] < [2]", "E692"),
        ("{} == 1", "E735"),
        ("{} < {}", "E736"),
        ("1.5 << 1", "E1282"),
        ("1 << -1", "E1283"),
    ],
)
def test_operator_errors(vim, source, code):
    with pytest.raises((InvalidOperation, TypeCoercionError)) as info:
        vim.evaluate(source)
    assert info.value.code == code


@pytest.mark.parametrize(
    "source,expected",
    [
        ("'abc' == 'abc'", 1),
        ("'abc' ==? 'ABC'", 1),
        ("'abc' ==# 'ABC'", 0),
        ("'abc' < 'abd'", 1),
        ("10 == '10'", 1),
        ("'10' == 10", 1),
        ("1.0 == 1", 1),
        ("[1, [2]] == [1, [2]]", 1),
        ("[4] == ['4']", 0),
        ("{'a': 1} != {'a': 2}", 1),
        ("'foobar' =~ '^foo'", 1),
        ("'foobar' !~ 'baz'", 1),
        ("'FOO' =~? 'foo'", 1),
        ("[] is []", 0),
        ("'a' is 'a'", 1),
        ("1 isnot '1'", 1),
    ],
)
def test_comparisons(vim, source, expected):
    assert vim.evaluate(source) == VimInt(expected)


def test_is_compares_container_identity(vim):
    vim.execute("let l = [1] | let m = l")
    assert vim.evaluate("l is m") == VimInt(1)
    assert vim.evaluate("l is copy(l)") == VimInt(0)
    assert vim.evaluate("l == copy(l)") == VimInt(1)


def test_ignorecase_option_changes_default_comparison(vim):
    assert vim.evaluate("'abc' == 'ABC'") == VimInt(0)
    vim.execute("set ignorecase")
    assert vim.evaluate("'abc' == 'ABC'") == VimInt(1)
    assert vim.evaluate("'abc' ==# 'ABC'") == VimInt(0)


def test_list_and_dictionary_equality_is_cycle_safe():
    a = VimList([VimInt(1)])
    a.values.append(a)
    b = VimList([VimInt(1)])
    b.values.append(b)
    assert compare(BinaryOperator.EQUALS, a, b)

    d = VimDictionary()
    d.dictionary["me"] = d
    assert compare(BinaryOperator.EQUALS, d, d)


@given(
    st.integers(min_value=INT_MIN, max_value=INT_MAX),
    st.integers(min_value=INT_MIN, max_value=INT_MAX),
)
def test_addition_wraps_like_twos_complement(a, b):
    assert apply(BinaryOperator.ADD, VimInt(a), VimInt(b)) == VimInt(wrap32(a + b))
    assert apply(BinaryOperator.MULTIPLY, VimInt(a), VimInt(b)) == VimInt(wrap32(a * b))


@given(st.integers(min_value=0, max_value=40))
def test_shift_left(amount):
    result = apply(BinaryOperator.SHIFT_LEFT, VimInt(1), VimInt(amount))
    assert result == VimInt(0 if amount >= 32 else wrap32(1 << amount))


# -------------------------------
# Compound assignment
# -------------------------------
def test_list_plus_equals_extends_in_place():
    target = VimList([VimInt(1)])
    result = apply_assignment("+=", target, VimList([VimInt(2)]))
    assert result is target
    assert target == VimList([VimInt(1), VimInt(2)])


@pytest.mark.parametrize(
    "operator,current,value",
    [
        ("-=", VimList(), VimList()),
        ("+=", VimDictionary(), VimDictionary()),
        ("%=", VimFloat(1.0), VimInt(1)),
        (".=", VimFloat(1.0), VimString("x")),
    ],
)
def test_compound_assignment_type_errors(operator, current, value):
    with pytest.raises(WrongVariableType) as info:
        apply_assignment(operator, current, value)
    assert info.value.code == "E734"


@pytest.mark.parametrize(
    "operator,current,value,expected",
    [
        ("+=", VimInt(1), VimInt(2), VimInt(3)),
        ("-=", VimInt(1), VimInt(2), VimInt(-1)),
        ("*=", VimInt(3), VimInt(2), VimInt(6)),
        ("/=", VimInt(7), VimInt(2), VimInt(3)),
        ("%=", VimInt(7), VimInt(2), VimInt(1)),
        (".=", VimString("a"), VimInt(1), VimString("a1")),
        ("..=", VimString("a"), VimString("b"), VimString("ab")),
        ("+=", VimFloat(1.5), VimInt(1), VimFloat(2.5)),
    ],
)
def test_compound_assignment(operator, current, value, expected):
    assert apply_assignment(operator, current, value) == expected
