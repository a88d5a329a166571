import pytest

from viml.errors import (
    InvalidExpression,
    KeyNotPresent,
    TooFewArguments,
    TooManyArguments,
    UndefinedVariable,
    UnknownFunction,
    VimError,
)
from viml.evaluation.operators import BinaryOperator
from viml.reader.expressions import (
    BinaryExpression,
    FunctionCall,
    IndexExpression,
    MemberExpression,
    MethodCall,
    NumberLiteral,
    SliceExpression,
    StringLiteral,
    VariableExpression,
)
from viml.reader.lexer import lex
from viml.reader.parser import parse_expression, parse_expression_list, unescape_double_quoted
from viml.types.values import VimBlob, VimFloat, VimFuncref, VimInt, VimList, VimString


@pytest.mark.parametrize(
    "source,expected",
    [
        ("1", [("number", "1")]),
        ("0x1f", [("number", "0x1f")]),
        ("1.5e3", [("float", "1.5e3")]),
        ("0zFF00", [("blob", "0zFF00")]),
        ("'it''s'", [("sq_string", "'it''s'")]),
        ('"a\\"b"', [("dq_string", '"a\\"b"')]),
        ("g:x", [("name", "g:x")]),
        ("&ic", [("option", "&ic")]),
        ("@a", [("register", "@a")]),
        ("$HOME", [("env", "$HOME")]),
        ("a ==# b", [("name", "a"), ("op", "==#"), ("name", "b")]),
        ("x->f()", [("name", "x"), ("op", "->"), ("name", "f"), ("op", "("), ("op", ")")]),
    ],
)
def test_lexer_tokens(source, expected):
    assert [(t.kind, t.text) for t in lex(source)] == expected


@pytest.mark.parametrize(
    "source,expected",
    [
        ("a\\nb", "a\nb"),
        ("tab\\there", "tab\there"),
        ("\\x41\\u00e9", "Aé"),
        ("\\101", "A"),
        ("\\<CR>", "\r"),
        ("\\q", "q"),
    ],
)
def test_double_quoted_escapes(source, expected):
    assert unescape_double_quoted(source) == expected


def test_precedence_builds_expected_tree():
    expr = parse_expression("1 + 2 * 3")
    assert isinstance(expr, BinaryExpression)
    assert expr.op is BinaryOperator.ADD
    assert expr.lhs == NumberLiteral(1)
    assert isinstance(expr.rhs, BinaryExpression) and expr.rhs.op is BinaryOperator.MULTIPLY


@pytest.mark.parametrize(
    "source,kind",
    [
        ("d.key", MemberExpression),
        ("l[0]", IndexExpression),
        ("l[1:2]", SliceExpression),
        ("len(x)", FunctionCall),
        ("x->len()", MethodCall),
        ("g:name", VariableExpression),
        ("'str'", StringLiteral),
    ],
)
def test_postfix_forms(source, kind):
    assert isinstance(parse_expression(source), kind)


def test_expression_list_stops_at_whitespace_separated_items():
    exprs = parse_expression_list("1 'two' [3]")
    assert len(exprs) == 3


def test_trailing_garbage_is_an_error():
    with pytest.raises(InvalidExpression):
        parse_expression("1 +")


# -------------------------------
# Evaluation
# -------------------------------
@pytest.mark.parametrize(
    "source,expected",
    [
        ("[1, 2, 3][1]", VimInt(2)),
        ("[1, 2, 3][-1]", VimInt(3)),
        ("[1, 2, 3, 4][1:2]", VimList([VimInt(2), VimInt(3)])),
        ("[1, 2, 3][5:]", VimList()),
        ("'hello'[1]", VimString("e")),
        ("'hello'[1:3]", VimString("ell")),
        ("'hello'[10]", VimString("")),
        ("{'a': 1}.a", VimInt(1)),
        ("#{a: 5}['a']", VimInt(5)),
        ("0z0102[1]", VimInt(2)),
        ("1.5", VimFloat(1.5)),
        ('"a\\tb"', VimString("a\tb")),
        ("{x -> x * 2}(21)", VimInt(42)),
        ("[1, 2]->len()", VimInt(2)),
        ("'abc'->toupper()", VimString("ABC")),
        ("3->range()", VimList([VimInt(0), VimInt(1), VimInt(2)])),
    ],
)
def test_evaluate(vim, source, expected):
    assert vim.evaluate(source) == expected


def test_undefined_variable(vim):
    with pytest.raises(UndefinedVariable) as info:
        vim.evaluate("nope")
    assert str(info.value) == "E121: Undefined variable: nope"


def test_missing_key(vim):
    with pytest.raises(KeyNotPresent) as info:
        vim.evaluate("{'a': 1}.b")
    assert info.value.code == "E716"


def test_index_out_of_range(vim):
    with pytest.raises(VimError) as info:
        vim.evaluate("[1][3]")
    assert str(info.value) == "E684: List index out of range: 3"


def test_unknown_function(vim):
    with pytest.raises(UnknownFunction) as info:
        vim.evaluate("nosuch(1)")
    assert str(info.value) == "E117: Unknown function: nosuch"


def test_argument_counts_are_distinct_errors(vim):
    with pytest.raises(TooFewArguments) as info:
        vim.evaluate("len()")
    assert info.value.code == "E119"
    with pytest.raises(TooManyArguments) as info:
        vim.evaluate("len(1, 2)")
    assert info.value.code == "E118"


def test_options_registers_and_environment(vim, monkeypatch):
    monkeypatch.setenv("VIML_TEST_VALUE", "xyz")
    assert vim.evaluate("&shiftwidth") == VimInt(8)
    assert vim.evaluate("$VIML_TEST_VALUE") == VimString("xyz")
    vim.execute("let @a = 'reg'")
    assert vim.evaluate("@a") == VimString("reg")


def test_funcref_with_bound_arguments(vim):
    vim.execute("let F = function('add', [[1]])")
    assert isinstance(vim.evaluate("F"), VimFuncref)
    assert vim.evaluate("F(2)") == VimList([VimInt(1), VimInt(2)])
    assert vim.evaluate("string(function('len'))") == VimString("function('len')")


def test_lambda_closes_over_function_locals(vim):
    vim.execute("\n".join([
        "function! Counter()",
        "  let n = 10",
        "  return {x -> n + x}",
        "endfunction",
    ]))
    assert vim.evaluate("Counter()(5)") == VimInt(15)


def test_blob_literal(vim):
    assert vim.evaluate("0zDEADBEEF") == VimBlob(b"\xde\xad\xbe\xef")
