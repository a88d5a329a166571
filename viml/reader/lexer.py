"""Tokenizer for expressions.

`lex` is a lazy generator, so a trailing `" comment` after a complete
expression is only looked at when the parser asks for more input; an
unterminated double quote becomes a `comment` token running to the end.
"""

from __future__ import annotations

import re
from typing import Iterator, NamedTuple

from viml.errors import InvalidExpression


TOKEN_RE = re.compile(
    r"(?P<blob>0[zZ](?:[0-9a-fA-F]{2}\.?)*)"
    r"|(?P<float>\d+\.\d+(?:[eE][-+]?\d+)?)"
    r"|(?P<number>0[xX][0-9a-fA-F]+|0[bB][01]+|0[oO][0-7]+|\d+)"
    r'|(?P<dq_string>"(?:\\.|[^\\"\n])*")'
    r"|(?P<sq_string>'(?:[^']|'')*')"
    r"|(?P<comment>\"[^\n]*)"
    r"|(?P<literal_dict>#\{)"
    r"|(?P<option>&(?:[lg]:)?[a-zA-Z]+)"
    r"|(?P<register>@.)"
    r"|(?P<env>\$[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<name>[gslabwtv]:(?:[A-Za-z_][A-Za-z0-9_#]*|\d+)?|[A-Za-z_][A-Za-z0-9_#]*)"
    r"|(?P<assign>\.\.=|[-+*/%.]=|=(?![=~]))"
    r"|(?P<op>\.\.\.|==[#?]?|!=[#?]?|>=[#?]?|<=[#?]?|=~[#?]?|!~[#?]?|->|\.\.|&&|\|\||\?\?"
    r"|<<|>>|>[#?]?|<[#?]?|[-+*/%!?:.,;()\[\]{}])"
)

SPACE_RE = re.compile(r"[ \t]*")


class Token(NamedTuple):
    kind: str
    text: str
    pos: int
    end: int
    space_before: bool


def lex(source: str, start: int = 0) -> Iterator[Token]:
    """Token generator over `source` starting at `start`."""
    pos = start
    n = len(source)
    while True:
        m = SPACE_RE.match(source, pos)
        space_before = m.end() > pos
        pos = m.end()
        if pos >= n:
            return
        m = TOKEN_RE.match(source, pos)
        if m is None:
            raise InvalidExpression(f'Invalid expression: "{source[pos:]}"')
        kind = m.lastgroup
        yield Token(kind, m.group(kind), pos, m.end(), space_before)
        pos = m.end()
