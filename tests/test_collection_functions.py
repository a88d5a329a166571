import pytest

from viml.commands.command import ExecutionResult
from viml.errors import (
    InvalidArgument,
    InvalidExpression,
    InvalidRange,
    KeyAlreadyExists,
    KeyNotPresent,
    LockedValue,
    TooManyArguments,
    VimError,
)
from viml.types.values import VimBlob, VimDictionary, VimInt, VimList, VimString


def ints(*values):
    return VimList([VimInt(v) for v in values])


def strings(*values):
    return VimList([VimString(v) for v in values])


# -------------------------------
# filter(), map(), mapnew(), foreach()
# -------------------------------
@pytest.mark.parametrize(
    "source,expected",
    [
        ("filter([1, 2, 3], 'v:val > 1')", ints(2, 3)),
        ("filter([1, 2, 3], {k, v -> k != 1})", ints(1, 3)),
        ("filter({'a': 1, 'b': 2}, 'v:key == \"b\"')", VimDictionary({"b": VimInt(2)})),
        ("filter('hello', 'v:val != \"l\"')", VimString("heo")),
        ("filter(0z010203, 'v:val != 2')", VimBlob(b"\x01\x03")),
        ("map([1, 2], 'v:val * 10')", ints(10, 20)),
        ("map([1, 2], {_, v -> v + v:key})", ints(1, 3)),
        ("map({'a': 1}, 'v:key .. v:val')", VimDictionary({"a": VimString("a1")})),
        ("map('abc', 'toupper(v:val)')", VimString("ABC")),
        ("map([1, 2], 7)", ints(7, 7)),
        ("mapnew([1, 2], 'v:val + 1')", ints(2, 3)),
    ],
)
def test_callback_functions(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_filter_changes_the_list_in_place(vim):
    vim.execute("let l = [1, 2, 3] | call filter(l, 'v:val > 1')")
    assert vim.evaluate("l") == ints(2, 3)


def test_mapnew_leaves_the_original_alone(vim):
    vim.execute("let l = [1, 2] | let m = mapnew(l, 'v:val * 2')")
    assert vim.evaluate("l") == ints(1, 2)
    assert vim.evaluate("m") == ints(2, 4)
    assert vim.evaluate("l is m") == VimInt(0)


def test_map_with_a_named_function(vim):
    vim.execute("\n".join([
        "function! Twice(key, val)",
        "  return a:val * 2",
        "endfunction",
    ]))
    assert vim.evaluate("map([1, 2], function('Twice'))") == ints(2, 4)


def test_foreach_visits_every_item_and_returns_the_input(vim):
    vim.execute("let seen = [] | let l = [3, 4]")
    vim.execute("call foreach(l, 'call(\"add\", [seen, v:key .. \":\" .. v:val])')")
    assert vim.evaluate("seen") == strings("0:3", "1:4")
    assert vim.evaluate("foreach(l, 'v:val') is l") == VimInt(1)


def test_callback_variables_are_restored(vim):
    vim.evaluate("map([1], 'v:val')")
    assert vim.evaluate("exists('v:val')") == VimInt(0)


def test_empty_callback_expression(vim):
    with pytest.raises(InvalidExpression):
        vim.evaluate("filter([1], '')")


def test_filter_on_a_locked_list(vim):
    vim.execute("let l = [1, 2] | lockvar l")
    assert vim.execute("call filter(l, 0)") is ExecutionResult.ERROR
    assert vim.host.messages.last_message == "E741: Value is locked: filter() argument"
    assert vim.evaluate("l") == ints(1, 2)


def test_map_on_a_locked_item(vim):
    vim.execute("let l = [[1], 2] | lockvar 1 l[0]")
    with pytest.raises(LockedValue) as info:
        vim.evaluate("map(l, 0)")
    assert str(info.value) == "E741: Value is locked: map() argument"


def test_callback_must_not_be_a_container(vim):
    with pytest.raises(VimError) as info:
        vim.evaluate("map([1], [])")
    assert info.value.code == "E730"


# -------------------------------
# remove()
# -------------------------------
def test_remove_range_with_negative_end(vim):
    vim.execute("let l = [1, 2, 3]")
    assert vim.evaluate("remove(l, 1, -2)") == ints(2, 3)
    assert vim.evaluate("l") == ints(1)


@pytest.mark.parametrize(
    "setup,source,removed,remaining",
    [
        ("let l = [1, 2, 3]", "remove(l, 0)", VimInt(1), ints(2, 3)),
        ("let l = [1, 2, 3]", "remove(l, -1)", VimInt(3), ints(1, 2)),
        ("let l = [1, 2, 3, 4]", "remove(l, 1, 2)", ints(2, 3), ints(1, 4)),
        ("let l = {'a': 1, 'b': 2}", "remove(l, 'a')", VimInt(1), VimDictionary({"b": VimInt(2)})),
        ("let l = 0z0102", "remove(l, 0)", VimInt(1), VimBlob(b"\x02")),
    ],
)
def test_remove(vim, setup, source, removed, remaining):
    vim.execute(setup)
    assert vim.evaluate(source) == removed
    assert vim.evaluate("l") == remaining


def test_remove_end_before_start_is_an_invalid_range(vim):
    vim.execute("let l = [1, 2, 3]")
    with pytest.raises(InvalidRange) as info:
        vim.evaluate("remove(l, 2, 0)")
    assert str(info.value) == "E16: Invalid range"
    assert vim.evaluate("l") == ints(1, 2, 3)


@pytest.mark.parametrize(
    "source,error,message",
    [
        ("remove([1], 5)", VimError, "E684: List index out of range: 5"),
        ("remove({'a': 1}, 'b')", KeyNotPresent, 'E716: Key not present in Dictionary: "b"'),
        ("remove({'a': 1}, 'a', 'b')", TooManyArguments, "E118: Too many arguments for function: remove"),
    ],
)
def test_remove_errors(vim, source, error, message):
    with pytest.raises(error) as info:
        vim.evaluate(source)
    assert str(info.value) == message


# -------------------------------
# extend()
# -------------------------------
@pytest.mark.parametrize(
    "source,expected",
    [
        ("extend([1, 2], [3])", ints(1, 2, 3)),
        ("extend([1, 2], [3], 0)", ints(3, 1, 2)),
        ("extend([1, 2], [3], -1)", ints(1, 3, 2)),
        ("extend({'a': 1}, {'a': 2, 'b': 3})", VimDictionary({"a": VimInt(2), "b": VimInt(3)})),
        ("extend({'a': 1}, {'a': 2, 'b': 3}, 'keep')", VimDictionary({"a": VimInt(1), "b": VimInt(3)})),
        ("extend(0z01, 0z02)", VimBlob(b"\x01\x02")),
    ],
)
def test_extend(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_extend_error_mode_stops_at_the_first_existing_key(vim):
    vim.execute("let d = {'b': 1} | let e = {'a': 1, 'b': 2, 'c': 3}")
    with pytest.raises(KeyAlreadyExists) as info:
        vim.evaluate("extend(d, e, 'error')")
    assert str(info.value) == "E737: Key already exists: b"
    # keys before the conflict were already added
    assert vim.evaluate("sort(keys(d))") == strings("a", "b")
    assert vim.evaluate("d.b") == VimInt(1)


def test_extend_rejects_unknown_modes(vim):
    with pytest.raises(InvalidArgument) as info:
        vim.evaluate("extend({}, {}, 'merge')")
    assert info.value.code == "E475"


def test_extend_locked_dictionary(vim):
    vim.execute("let d = {} | lockvar d")
    with pytest.raises(LockedValue) as info:
        vim.evaluate("extend(d, {'x': 1})")
    assert str(info.value) == "E741: Value is locked: extend() argument"


# -------------------------------
# slice(), reverse(), get(), min(), max()
# -------------------------------
@pytest.mark.parametrize(
    "source,expected",
    [
        ("slice([1, 2, 3, 4], 1, 3)", ints(2, 3)),
        ("slice([1, 2, 3, 4], -2)", ints(3, 4)),
        ("slice([1, 2, 3], 2, 1)", VimList()),
        ("slice('hello', 1, -1)", VimString("ell")),
        ("slice(12345, 1, 3)", VimString("23")),
        ("slice(0z010203, 1)", VimBlob(b"\x02\x03")),
        ("slice({'a': 1}, 0)", VimDictionary({"a": VimInt(1)})),
        ("slice(1.5, 0)", VimInt(0)),
        ("reverse([1, 2, 3])", ints(3, 2, 1)),
        ("reverse('abc')", VimString("cba")),
        ("reverse(0z0102)", VimBlob(b"\x02\x01")),
        ("get([1, 2], 1)", VimInt(2)),
        ("get([1, 2], 5)", VimInt(0)),
        ("get([1, 2], -5, 'x')", VimString("x")),
        ("get({'a': 1}, 'a')", VimInt(1)),
        ("get({'a': 1}, 'b', [])", VimList()),
        ("get(0z0a, 0)", VimInt(10)),
        ("get(0z0a, 3)", VimInt(-1)),
        ("get(function('len'), 'name')", VimString("len")),
        ("get(function('add', [[]]), 'args')", VimList([VimList()])),
        ("min([3, 1, 2])", VimInt(1)),
        ("max([3, '7', 2])", VimInt(7)),
        ("max({'a': 4, 'b': 9})", VimInt(9)),
        ("min([])", VimInt(0)),
    ],
)
def test_non_mutating_access(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_reverse_is_in_place(vim):
    vim.execute("let l = [1, 2] | call reverse(l)")
    assert vim.evaluate("l") == ints(2, 1)


def test_reverse_locked_list(vim):
    vim.execute("let l = [1, 2] | lockvar l")
    with pytest.raises(LockedValue):
        vim.evaluate("reverse(l)")
    # Strings are never changed in place, so a locked one is fine
    vim.execute("let s = 'ab' | lockvar s")
    assert vim.evaluate("reverse(s)") == VimString("ba")


def test_get_unknown_funcref_property(vim):
    with pytest.raises(InvalidArgument):
        vim.evaluate("get(function('len'), 'nope')")


# -------------------------------
# List and Dictionary functions
# -------------------------------
@pytest.mark.parametrize(
    "source,expected",
    [
        ("len('héllo')", VimInt(6)),
        ("len([1, 2])", VimInt(2)),
        ("len({'a': 1})", VimInt(1)),
        ("len(1234)", VimInt(4)),
        ("empty([])", VimInt(1)),
        ("empty('0')", VimInt(0)),
        ("empty(0)", VimInt(1)),
        ("keys({'a': 1, 'b': 2})", strings("a", "b")),
        ("values({'a': 1})", ints(1)),
        ("items({'a': 1})", VimList([VimList([VimString("a"), VimInt(1)])])),
        ("has_key({'a': 1}, 'a')", VimInt(1)),
        ("add([1], 2)", ints(1, 2)),
        ("add(0z01, 2)", VimBlob(b"\x01\x02")),
        ("insert([1, 2], 0)", ints(0, 1, 2)),
        ("insert([1, 2], 9, 1)", ints(1, 9, 2)),
        ("insert([1, 2], 9, 2)", ints(1, 2, 9)),
        ("index([1, 2, 3], 2)", VimInt(1)),
        ("index([1, 2, 3], 9)", VimInt(-1)),
        ("index(['A'], 'a', 0, 1)", VimInt(0)),
        ("index([1, '1'], '1')", VimInt(1)),
        ("count([1, 2, 1], 1)", VimInt(2)),
        ("count('banana', 'an')", VimInt(2)),
        ("count({'a': 1, 'b': 1}, 1)", VimInt(2)),
        ("join([1, 'a', [2]], '-')", VimString("1-a-[2]")),
        ("join(['a', 'b'])", VimString("a b")),
        ("split('  a b  ')", strings("a", "b")),
        ("split('a,b,,c', ',')", strings("a", "b", "", "c")),
        ("split(',a,', ',', 1)", strings("", "a", "")),
        ("split('abc', '')", strings("a", "b", "c")),
        ("sort([3, 1, 2])", ints(1, 2, 3)),
        ("sort([10, 9, 100])", ints(10, 100, 9)),
        ("sort([10, 9, 100], 'n')", ints(9, 10, 100)),
        ("sort(['b', 'A', 'a'], 'i')", strings("A", "a", "b")),
        ("sort([1, 3, 2], {a, b -> b - a})", ints(3, 2, 1)),
        ("uniq([1, 1, 2, 1])", ints(1, 2, 1)),
        ("range(3)", ints(0, 1, 2)),
        ("range(2, 4)", ints(2, 3, 4)),
        ("range(4, 0, -2)", ints(4, 2, 0)),
        ("range(2, 1)", VimList()),
    ],
)
def test_list_functions(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_copy_and_deepcopy(vim):
    vim.execute("let l = [[1]] | let c = copy(l) | let d = deepcopy(l)")
    assert vim.evaluate("c[0] is l[0]") == VimInt(1)
    assert vim.evaluate("d[0] is l[0]") == VimInt(0)
    assert vim.evaluate("d == l") == VimInt(1)


def test_sort_with_a_named_comparator(vim):
    vim.execute("\n".join([
        "function! ByLength(a, b)",
        "  return len(a:a) - len(a:b)",
        "endfunction",
    ]))
    assert vim.evaluate("sort(['ccc', 'a', 'bb'], 'ByLength')") == strings("a", "bb", "ccc")


@pytest.mark.parametrize(
    "source,code",
    [
        ("range(1, 2, 0)", "E726"),
        ("range(5, 1)", "E727"),
        ("insert([1], 0, 5)", "E684"),
        ("add({}, 1)", "E897"),
        ("add(0z00, 256)", "E1239"),
        ("keys([])", "E715"),
        ("join('x')", "E714"),
        ("sort('x')", "E686"),
    ],
)
def test_list_function_errors(vim, source, code):
    with pytest.raises(VimError) as info:
        vim.evaluate(source)
    assert info.value.code == code


@pytest.mark.parametrize("function", ["add(l, 3)", "insert(l, 0)", "sort(l)", "uniq(l)"])
def test_mutating_list_functions_respect_locks(vim, function):
    vim.execute("let l = [2, 1] | lockvar 1 l")
    name = function.split("(")[0]
    with pytest.raises(LockedValue) as info:
        vim.evaluate(function)
    assert str(info.value) == f"E741: Value is locked: {name}() argument"
