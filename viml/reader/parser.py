"""
  Expression parser

- Recursive descent over the token stream from `lex`, one method per
  precedence level (lowest first):

    expr1   cond ? a : b,  a ?? b
    expr2   ||
    expr3   &&
    expr4   == != > >= < <= =~ !~ is isnot   (with # / ? suffixes)
    expr5   << >>
    expr6   + - . ..
    expr7   * / %
    expr8   ! - +            (unary)
    expr9   x[i] x[a:b] x.key x(args) x->method(args)
    atoms   literals, variables, &option, @r, $ENV, (expr), [list], {dict},
            #{literal dict}, {args -> lambda}

- `x.key` without surrounding white space is a member access; `a . b` and
  `a .. b` are concatenation.
- White space before `[` or `(` ends the expression, as in Vim.
"""

from __future__ import annotations

from typing import Iterator

from viml.errors import InvalidExpression, VimError
from viml.evaluation.operators import BinaryOperator, CaseRule, UnaryOperator
from viml.reader.expressions import (
    BinaryExpression,
    BlobLiteral,
    CallExpression,
    DictionaryLiteral,
    EnvVariableExpression,
    Expression,
    FalsyExpression,
    FloatLiteral,
    FunctionCall,
    IndexExpression,
    LambdaExpression,
    ListLiteral,
    MemberExpression,
    MethodCall,
    NumberLiteral,
    OptionExpression,
    RegisterExpression,
    SliceExpression,
    StringLiteral,
    TernaryExpression,
    UnaryExpression,
    VariableExpression,
)
from viml.reader.lexer import Token, lex
from viml.types.environment import Variable


COMPARISON_SYMBOLS = {"==", "!=", ">", ">=", "<", "<=", "=~", "!~"}
IDENTITY_NAMES = {"is": BinaryOperator.IS, "isnot": BinaryOperator.IS_NOT}

ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "e": "\x1b",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    '"': '"',
}

KEY_NOTATION: dict[str, str] = {
    "cr": "\r",
    "enter": "\r",
    "return": "\r",
    "nl": "\n",
    "esc": "\x1b",
    "tab": "\t",
    "space": " ",
    "bs": "\b",
    "lt": "<",
    "bar": "|",
    "bslash": "\\",
}


def parse_number(text: str) -> int:
    """Value of a Number literal (decimal, 0x hex, 0b binary, 0o or leading-zero octal)."""
    lowered = text.lower()
    if lowered.startswith("0x"):
        return int(text[2:], 16)
    if lowered.startswith("0b"):
        return int(text[2:], 2)
    if lowered.startswith("0o"):
        return int(text[2:], 8)
    if len(text) > 1 and text.startswith("0") and all(c in "01234567" for c in text):
        return int(text, 8)
    return int(text)


def unescape_double_quoted(body: str) -> str:
    """Decode the backslash escapes of a "..." string body."""
    out: list[str] = []
    i = 0
    n = len(body)
    while i < n:
        c = body[i]
        if c != "\\" or i + 1 >= n:
            out.append(c)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in ESCAPES:
            out.append(ESCAPES[nxt])
            i += 2
        elif nxt in "xX" and i + 2 < n and body[i + 2] in "0123456789abcdefABCDEF":
            j = i + 2
            while j < n and j < i + 4 and body[j] in "0123456789abcdefABCDEF":
                j += 1
            out.append(chr(int(body[i + 2:j], 16)))
            i = j
        elif nxt in "uU" and i + 2 < n:
            width = 4 if nxt == "u" else 8
            j = i + 2
            while j < n and j < i + 2 + width and body[j] in "0123456789abcdefABCDEF":
                j += 1
            if j == i + 2:
                out.append(nxt)
                i += 2
            else:
                out.append(chr(int(body[i + 2:j], 16)))
                i = j
        elif nxt in "01234567":
            j = i + 1
            while j < n and j < i + 4 and body[j] in "01234567":
                j += 1
            out.append(chr(int(body[i + 1:j], 8)))
            i = j
        elif nxt == "<" and (end := body.find(">", i)) > 0 and body[i + 2:end].lower() in KEY_NOTATION:
            out.append(KEY_NOTATION[body[i + 2:end].lower()])
            i = end + 1
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


class TokenStream:
    """Lazily buffered tokens with a recursive descent expression parser on top."""

    __slots__ = ("source", "tokens", "buffer", "position")

    def __init__(self, source: str, start: int = 0):
        self.source = source
        self.tokens: Iterator[Token] = lex(source, start)
        self.buffer: list[Token] = []
        # end of the last consumed token
        self.position = start

    # -------------------------------
    # Stream primitives
    # -------------------------------
    def peek(self, k: int = 0) -> Token | None:
        while len(self.buffer) <= k:
            token = next(self.tokens, None)
            if token is None:
                return None
            self.buffer.append(token)
        return self.buffer[k]

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise self.error()
        self.buffer.pop(0)
        self.position = token.end
        return token

    def at_end(self) -> bool:
        token = self.peek()
        return token is None or token.kind == "comment"

    def remainder(self) -> str:
        """Unconsumed source text, starting right after the last consumed token."""
        return self.source[self.position:]

    def is_op(self, text: str, k: int = 0) -> bool:
        token = self.peek(k)
        return token is not None and token.kind == "op" and token.text == text

    def expect_op(self, text: str) -> Token:
        if not self.is_op(text):
            raise self.error()
        return self.advance()

    def error(self) -> VimError:
        return InvalidExpression(f'Invalid expression: "{self.source.strip()}"')

    # -------------------------------
    # Precedence levels
    # -------------------------------
    def parse_expr(self) -> Expression:
        condition = self._parse_or()
        if self.is_op("?"):
            self.advance()
            then = self.parse_expr()
            self.expect_op(":")
            otherwise = self.parse_expr()
            return TernaryExpression(condition, then, otherwise)
        if self.is_op("??"):
            self.advance()
            return FalsyExpression(condition, self.parse_expr())
        return condition

    def parse_target(self) -> Expression:
        """Assignment target of :let, :unlet and :lockvar: a name with subscripts."""
        return self._parse_postfix(self._parse_atom())

    def _parse_or(self) -> Expression:
        lhs = self._parse_and()
        while self.is_op("||"):
            self.advance()
            lhs = BinaryExpression(BinaryOperator.LOGICAL_OR, lhs, self._parse_and())
        return lhs

    def _parse_and(self) -> Expression:
        lhs = self._parse_comparison()
        while self.is_op("&&"):
            self.advance()
            lhs = BinaryExpression(BinaryOperator.LOGICAL_AND, lhs, self._parse_comparison())
        return lhs

    def _comparison_operator(self) -> tuple[BinaryOperator, CaseRule] | None:
        token = self.peek()
        if token is None:
            return None
        if token.kind == "op":
            symbol = token.text.rstrip("#?")
            if symbol in COMPARISON_SYMBOLS:
                self.advance()
                return BinaryOperator(symbol), CaseRule(token.text[len(symbol):])
            return None
        if token.kind == "name" and token.text.rstrip("#") in IDENTITY_NAMES:
            op = IDENTITY_NAMES[token.text.rstrip("#")]
            self.advance()
            if token.text.endswith("#"):
                return op, CaseRule.MATCH_CASE
            suffix = self.peek()
            if suffix is not None and suffix.kind == "op" and suffix.text == "?" and not suffix.space_before:
                self.advance()
                return op, CaseRule.IGNORE_CASE
            return op, CaseRule.DEFAULT
        return None

    def _parse_comparison(self) -> Expression:
        lhs = self._parse_shift()
        operator = self._comparison_operator()
        if operator is None:
            return lhs
        op, case = operator
        return BinaryExpression(op, lhs, self._parse_shift(), case)

    def _parse_shift(self) -> Expression:
        lhs = self._parse_additive()
        while self.is_op("<<") or self.is_op(">>"):
            op = BinaryOperator(self.advance().text)
            lhs = BinaryExpression(op, lhs, self._parse_additive())
        return lhs

    def _parse_additive(self) -> Expression:
        lhs = self._parse_multiplicative()
        while any(self.is_op(s) for s in ("+", "-", ".", "..")):
            op = BinaryOperator.from_symbol(self.advance().text)
            lhs = BinaryExpression(op, lhs, self._parse_multiplicative())
        return lhs

    def _parse_multiplicative(self) -> Expression:
        lhs = self._parse_unary()
        while any(self.is_op(s) for s in ("*", "/", "%")):
            op = BinaryOperator(self.advance().text)
            lhs = BinaryExpression(op, lhs, self._parse_unary())
        return lhs

    def _parse_unary(self) -> Expression:
        for symbol in ("!", "-", "+"):
            if self.is_op(symbol):
                self.advance()
                return UnaryExpression(UnaryOperator(symbol), self._parse_unary())
        return self._parse_postfix(self._parse_atom())

    def _parse_args(self, closing: str = ")") -> tuple[Expression, ...]:
        args: list[Expression] = []
        while not self.is_op(closing):
            args.append(self.parse_expr())
            if not self.is_op(closing):
                self.expect_op(",")
        self.advance()
        return tuple(args)

    def _parse_postfix(self, expr: Expression) -> Expression:
        while True:
            token = self.peek()
            if token is None or token.kind != "op":
                return expr
            if token.text == "[" and not token.space_before:
                self.advance()
                expr = self._parse_subscript(expr)
            elif token.text == "(" and not token.space_before:
                self.advance()
                expr = CallExpression(expr, self._parse_args())
            elif token.text == "." and not token.space_before and self._is_member_name():
                self.advance()
                expr = MemberExpression(expr, self.advance().text)
            elif token.text == "->":
                self.advance()
                expr = self._parse_method(expr)
            else:
                return expr

    def _is_member_name(self) -> bool:
        token = self.peek(1)
        return (
            token is not None
            and not token.space_before
            and token.kind in ("name", "number")
            and ":" not in token.text
        )

    def _parse_subscript(self, target: Expression) -> Expression:
        start = None
        if not self.is_op(":"):
            start = self.parse_expr()
            if self.is_op("]"):
                self.advance()
                return IndexExpression(target, start)
        self.expect_op(":")
        end = None
        if not self.is_op("]"):
            end = self.parse_expr()
        self.expect_op("]")
        return SliceExpression(target, start, end)

    def _parse_method(self, target: Expression) -> Expression:
        token = self.peek()
        if token is None:
            raise self.error()
        if token.kind == "name":
            self.advance()
            self.expect_op("(")
            return MethodCall(target, token.text, self._parse_args())
        if token.kind == "op" and token.text == "{":
            self.advance()
            callee = self._parse_brace()
            self.expect_op("(")
            return MethodCall(target, None, self._parse_args(), callee)
        raise self.error()

    # -------------------------------
    # Atoms
    # -------------------------------
    def _parse_atom(self) -> Expression:
        token = self.peek()
        if token is None:
            raise self.error()
        match token.kind:
            case "number":
                self.advance()
                return NumberLiteral(parse_number(token.text))
            case "float":
                self.advance()
                return FloatLiteral(float(token.text))
            case "blob":
                self.advance()
                return BlobLiteral(bytes.fromhex(token.text[2:].replace(".", "")))
            case "sq_string":
                self.advance()
                return StringLiteral(token.text[1:-1].replace("''", "'"))
            case "dq_string":
                self.advance()
                return StringLiteral(unescape_double_quoted(token.text[1:-1]))
            case "option":
                self.advance()
                name = token.text[1:]
                if name[:2] in ("l:", "g:"):
                    name = name[2:]
                return OptionExpression(name)
            case "register":
                self.advance()
                return RegisterExpression(token.text[1])
            case "env":
                self.advance()
                return EnvVariableExpression(token.text[1:])
            case "literal_dict":
                self.advance()
                return self._parse_literal_dict()
            case "name":
                self.advance()
                following = self.peek()
                if following is not None and following.kind == "op" and following.text == "(" \
                        and not following.space_before:
                    self.advance()
                    return FunctionCall(token.text, self._parse_args())
                return VariableExpression(Variable.parse(token.text))
            case "op":
                match token.text:
                    case "(":
                        self.advance()
                        expr = self.parse_expr()
                        self.expect_op(")")
                        return expr
                    case "[":
                        self.advance()
                        return ListLiteral(self._parse_args("]"))
                    case "{":
                        self.advance()
                        return self._parse_brace()
        raise self.error()

    def _is_lambda_ahead(self) -> bool:
        k = 0
        while True:
            token = self.peek(k)
            if token is None:
                return False
            if token.kind == "op" and token.text == "->":
                return True
            if token.kind != "name":
                return False
            separator = self.peek(k + 1)
            if separator is not None and separator.kind == "op" and separator.text == ",":
                k += 2
                continue
            k += 1

    def _parse_brace(self) -> Expression:
        """Body of `{...}` after the brace: a lambda or a dictionary literal."""
        if self._is_lambda_ahead():
            params: list[str] = []
            while not self.is_op("->"):
                params.append(self.advance().text)
                if self.is_op(","):
                    self.advance()
            self.advance()
            body = self.parse_expr()
            self.expect_op("}")
            return LambdaExpression(tuple(params), body)
        entries: list[tuple[Expression, Expression]] = []
        while not self.is_op("}"):
            key = self.parse_expr()
            self.expect_op(":")
            entries.append((key, self.parse_expr()))
            if not self.is_op("}"):
                self.expect_op(",")
        self.advance()
        return DictionaryLiteral(tuple(entries))

    def _parse_literal_dict(self) -> Expression:
        """#{key: value} with unquoted keys."""
        entries: list[tuple[Expression, Expression]] = []
        while not self.is_op("}"):
            token = self.advance()
            if token.kind == "name" and token.text.endswith(":"):
                key = token.text[:-1]
            elif token.kind in ("name", "number"):
                key = token.text
                self.expect_op(":")
            else:
                raise self.error()
            entries.append((StringLiteral(key), self.parse_expr()))
            if not self.is_op("}"):
                self.expect_op(",")
        self.advance()
        return DictionaryLiteral(tuple(entries))


def parse_expression(source: str) -> Expression:
    """Parse `source` as exactly one expression (a trailing comment is allowed)."""
    if not source.strip():
        raise InvalidExpression(f'Invalid expression: "{source}"')
    stream = TokenStream(source)
    expr = stream.parse_expr()
    if not stream.at_end():
        raise stream.error()
    return expr


def parse_expression_list(source: str) -> list[Expression]:
    """Parse white-space separated expressions (arguments of :echo and :execute)."""
    stream = TokenStream(source)
    exprs: list[Expression] = []
    while not stream.at_end():
        exprs.append(stream.parse_expr())
    return exprs
