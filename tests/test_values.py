import pytest
from hypothesis import given, strategies as st

from viml.errors import LockedValue, TypeCoercionError, VimError
from viml.types.coercion import (
    float_to_string,
    string_to_number,
    to_boolean,
    to_float,
    to_number,
    to_output_string,
    to_string,
    to_string_repr,
    type_number,
)
from viml.types.values import (
    INT_MAX,
    INT_MIN,
    VimBlob,
    VimDictionary,
    VimFloat,
    VimInt,
    VimList,
    VimString,
    deep_copy,
    reference_equals,
    shallow_copy,
    structural_equals,
    wrap32,
)


@pytest.mark.parametrize(
    "source,expected",
    [
        ("42", 42),
        ("  42", 42),
        ("-17abc", -17),
        ("0x1F", 31),
        ("0b101", 5),
        ("017", 15),
        ("0o17", 15),
        ("019", 19),
        ("abc", 0),
        ("", 0),
    ],
)
def test_string_to_number_uses_leading_prefix(source, expected):
    assert string_to_number(source) == expected


@pytest.mark.parametrize(
    "value,code",
    [
        (VimFloat(1.5), "E805"),
        (VimList(), "E745"),
        (VimDictionary(), "E728"),
        (VimBlob(b"\x01"), "E974"),
    ],
)
def test_to_number_rejects_non_numbers(value, code):
    with pytest.raises(TypeCoercionError) as info:
        to_number(value)
    assert info.value.code == code


@pytest.mark.parametrize(
    "value,code",
    [
        (VimFloat(1.5), "E806"),
        (VimList(), "E730"),
        (VimDictionary(), "E731"),
        (VimBlob(), "E976"),
    ],
)
def test_to_string_rejects_containers_and_floats(value, code):
    with pytest.raises(TypeCoercionError) as info:
        to_string(value)
    assert info.value.code == code


def test_string_is_not_a_float():
    with pytest.raises(TypeCoercionError) as info:
        to_float(VimString("1.5"))
    assert str(info.value) == "E892: Using a String as a Float"
    assert to_float(VimInt(3)) == 3.0


@pytest.mark.parametrize(
    "source,expected",
    [
        (1.5, "1.5"),
        (1.0, "1.0"),
        (-0.25, "-0.25"),
        (1e10, "1.0e10"),
        (1.5e-7, "1.5e-7"),
        (float("inf"), "inf"),
        (float("-inf"), "-inf"),
        (float("nan"), "nan"),
    ],
)
def test_float_formatting(source, expected):
    assert float_to_string(source) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (VimInt(1), True),
        (VimInt(0), False),
        (VimString("1abc"), True),
        (VimString("abc"), False),
    ],
)
def test_to_boolean(value, expected):
    assert to_boolean(value) is expected


def test_type_numbers():
    values = [VimInt(0), VimString(""), VimList(), VimDictionary(), VimFloat(0.0), VimBlob()]
    assert [type_number(v) for v in values] == [0, 1, 3, 4, 5, 10]


def test_string_repr_quotes_nested_strings():
    value = VimList([VimInt(1), VimString("it's"), VimDictionary({"a": VimFloat(2.0)})])
    assert to_string_repr(value) == "[1, 'it''s', {'a': 2.0}]"
    assert to_output_string(VimString("raw")) == "raw"
    assert to_string_repr(VimString("raw")) == "'raw'"
    assert to_string_repr(VimBlob(b"\x01\x02\x03\x04\x05")) == "0z01020304.05"


def test_cyclic_list_prints_placeholder():
    value = VimList([VimInt(1)])
    value.values.append(value)
    assert to_string_repr(value) == "[1, [...]]"

    dictionary = VimDictionary()
    dictionary.dictionary["self"] = dictionary
    assert to_string_repr(dictionary) == "{'self': {...}}"


# -------------------------------
# Equality
# -------------------------------
def test_reference_equality_is_identity_for_containers():
    a = VimList([VimInt(1)])
    b = VimList([VimInt(1)])
    assert reference_equals(a, a)
    assert not reference_equals(a, b)
    assert structural_equals(a, b)
    assert reference_equals(VimInt(3), VimInt(3))
    assert not reference_equals(VimInt(3), VimString("3"))


def test_structural_equality_requires_same_item_types():
    assert not structural_equals(VimList([VimInt(4)]), VimList([VimString("4")]))
    assert structural_equals(VimList([VimString("A")]), VimList([VimString("a")]), ignore_case=True)


def test_structural_equality_terminates_on_cycles():
    a = VimList([VimInt(1)])
    a.values.append(a)
    b = VimList([VimInt(1)])
    b.values.append(b)
    assert structural_equals(a, a)
    assert structural_equals(a, b)


@given(st.recursive(
    st.integers(min_value=INT_MIN, max_value=INT_MAX).map(VimInt) | st.text(max_size=5).map(VimString),
    lambda children: st.lists(children, max_size=4).map(VimList),
    max_leaves=20,
))
def test_deep_copy_is_equal_and_unshared(value):
    copy = deep_copy(value)
    assert structural_equals(copy, value)
    if isinstance(value, VimList):
        assert copy is not value


@given(st.integers(min_value=-2**40, max_value=2**40))
def test_wrap32_stays_in_range(n):
    wrapped = wrap32(n)
    assert INT_MIN <= wrapped <= INT_MAX
    assert (wrapped - n) % 2**32 == 0


def test_deep_copy_preserves_shared_references():
    inner = VimList([VimInt(1)])
    outer = VimList([inner, inner])
    copy = deep_copy(outer)
    assert copy.values[0] is copy.values[1]
    assert copy.values[0] is not inner


def test_deep_copy_noref_rejects_cycles():
    value = VimList()
    value.values.append(value)
    with pytest.raises(VimError) as info:
        deep_copy(value, noref=True)
    assert info.value.code == "E698"


def test_shallow_copy_shares_items():
    inner = VimList()
    outer = VimList([inner])
    copy = shallow_copy(outer)
    assert copy is not outer
    assert copy.values[0] is inner


# -------------------------------
# Locks
# -------------------------------
def test_lock_depth_reaches_nested_values():
    inner = VimList([VimInt(1)])
    outer = VimList([inner])
    outer.lock_var(1)
    assert outer.is_locked
    assert not inner.is_locked
    outer.unlock_var(1)
    outer.lock_var(2)
    assert inner.is_locked
    assert not inner.values[0].is_locked
    outer.lock_var(-1)
    assert inner.values[0].is_locked


def test_locked_value_error_code():
    assert LockedValue("Value is locked: x").code == "E741"
