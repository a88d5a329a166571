"""
  Script reader

- Joins continuation lines (a line starting with `\\` continues the previous
  one) and drops `"` comment lines.
- Splits lines at `|` outside of strings, except for commands that take the
  rest of the line as their argument (:!, :global, :vglobal, :normal,
  :command).
- Builds the block structure of :if, :while, :for, :try and :function.
  Everything else becomes a CommandLine that is parsed when it runs.
"""

from __future__ import annotations

import re

from viml.errors import MissingArgument, VimError
from viml.statements.nodes import (
    Block,
    BreakStatement,
    CommandLine,
    ContinueStatement,
    DeleteFunction,
    FinishStatement,
    ForLoop,
    FunctionDefinition,
    FunctionListing,
    IfStatement,
    ReturnStatement,
    Statement,
    ThrowStatement,
    TryStatement,
    WhileLoop,
)


Abbreviation = tuple[str, str]

# (required prefix, optional rest)
STATEMENT_KEYWORDS: list[Abbreviation] = [
    ("if", ""),
    ("elsei", "f"),
    ("el", "se"),
    ("en", "dif"),
    ("for", ""),
    ("endfo", "r"),
    ("wh", "ile"),
    ("endw", "hile"),
    ("try", ""),
    ("cat", "ch"),
    ("fina", "lly"),
    ("endt", "ry"),
    ("fu", "nction"),
    ("endf", "unction"),
    ("retu", "rn"),
    ("th", "row"),
    ("brea", "k"),
    ("con", "tinue"),
    ("fini", "sh"),
    ("delf", "unction"),
]

BAR_SWALLOWING: list[Abbreviation] = [("g", "lobal"), ("v", "global"), ("norm", "al"), ("com", "mand")]

MISSING_END = {
    "if": ("E171", "Missing :endif"),
    "for": ("E170", "Missing :endfor"),
    "while": ("E170", "Missing :endwhile"),
    "try": ("E600", "Missing :endtry"),
    "function": ("E126", "Missing :endfunction"),
}

ORPHANS = {
    "endif": ("E580", ":endif without :if"),
    "else": ("E581", ":else without :if"),
    "elseif": ("E582", ":elseif without :if"),
    "endfor": ("E588", ":endfor without :for"),
    "endwhile": ("E588", ":endwhile without :while"),
    "catch": ("E603", ":catch without :try"),
    "finally": ("E606", ":finally without :try"),
    "endtry": ("E602", ":endtry without :try"),
    "endfunction": ("E193", ":endfunction not inside a function"),
}

COMMAND_HEAD_RE = re.compile(
    r"[\s:]*(?:[0-9.,;$%+\-\s]|'.|/(?:\\.|[^/])*/|\?(?:\\.|[^?])*\?)*(?P<name>[A-Za-z]+|!)?"
)
KEYWORD_RE = re.compile(r"[\s:]*(?P<name>[a-z]+)(?P<bang>!?)(?P<argument>.*)", re.S)
FOR_RE = re.compile(r"(?P<targets>\[[^\]]*\]|[A-Za-z_][\w:#]*)\s+in\s+(?P<iterable>.*)", re.S)
FUNCTION_RE = re.compile(r"\s*(?P<name>[^\s(]+)\s*\((?P<params>[^)]*)\)\s*(?P<flags>.*)", re.S)
PARAM_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
FUNCTION_FLAGS = {"range", "abort", "dict", "closure"}


def find_abbreviation(name: str, table: list[Abbreviation]) -> str | None:
    """Full name of `name` if it is a valid abbreviation in `table`."""
    for required, optional in table:
        full = required + optional
        if name.startswith(required) and full.startswith(name):
            return full
    return None


def logical_lines(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.splitlines():
        stripped = raw.lstrip()
        if stripped.startswith('"\\ '):
            continue
        if stripped.startswith("\\") and lines:
            lines[-1] += stripped[1:]
            continue
        lines.append(raw)
    return lines


def _find_bar(text: str, start: int) -> int | None:
    """Index of the first command-separating `|` at or after `start`."""
    i = start
    n = len(text)
    in_single = in_double = False
    while i < n:
        c = text[i]
        if in_single:
            if c == "'":
                in_single = False
        elif in_double:
            if c == "\\":
                i += 1
            elif c == '"':
                in_double = False
        elif c == "\\" and i + 1 < n and text[i + 1] == "|":
            i += 1
        elif c == "'":
            in_single = True
        elif c == '"':
            if text.find('"', i + 1) < 0:
                # unterminated: a trailing comment
                return None
            in_double = True
        elif c == "|":
            return i
        i += 1
    return None


def split_bars(line: str) -> list[str]:
    segments: list[str] = []
    rest = line
    while True:
        m = COMMAND_HEAD_RE.match(rest)
        name = m.group("name") or ""
        if name == "!" or find_abbreviation(name, BAR_SWALLOWING):
            segments.append(rest)
            return segments
        bar = _find_bar(rest, m.end())
        if bar is None:
            segments.append(rest)
            return segments
        segments.append(rest[:bar])
        rest = rest[bar + 1:]


def split_keyword(segment: str) -> tuple[str | None, bool, str]:
    """(statement keyword, bang, argument) of a segment; keyword None for commands."""
    m = KEYWORD_RE.match(segment)
    if m is None:
        return None, False, segment
    keyword = find_abbreviation(m.group("name"), STATEMENT_KEYWORDS)
    if keyword is None:
        return None, False, segment
    return keyword, bool(m.group("bang")), m.group("argument").strip()


def parse_catch_pattern(argument: str) -> str | None:
    text = argument.strip()
    if not text:
        return None
    delimiter = text[0]
    if delimiter.isalnum():
        return text.split()[0]
    i = 1
    while i < len(text) and text[i] != delimiter:
        if text[i] == "\\":
            i += 1
        i += 1
    return text[1:i]


class ScriptParser:
    """Builds the statement tree of a script or command line."""

    __slots__ = ("segments", "position", "loop_depth")

    def __init__(self, text: str):
        self.segments = [segment for line in logical_lines(text) for segment in split_bars(line)]
        self.position = 0
        self.loop_depth = 0

    def parse(self) -> Block:
        body, _, _ = self._block((), None)
        return body

    def _block(self, terminators: tuple[str, ...], opener: str | None) -> tuple[Block, str | None, str]:
        statements: list[Statement] = []
        while self.position < len(self.segments):
            segment = self.segments[self.position]
            self.position += 1
            keyword, bang, argument = split_keyword(segment)
            if keyword in terminators:
                return tuple(statements), keyword, argument
            if keyword in ORPHANS:
                code, message = ORPHANS[keyword]
                raise VimError(message, code)
            statement = self._statement(segment, keyword, bang, argument)
            if statement is not None:
                statements.append(statement)
        if opener is not None:
            code, message = MISSING_END[opener]
            raise VimError(message, code)
        return tuple(statements), None, ""

    def _loop_body(self, end: str, opener: str) -> Block:
        self.loop_depth += 1
        try:
            body, _, _ = self._block((end,), opener)
        finally:
            self.loop_depth -= 1
        return body

    def _statement(self, segment: str, keyword: str | None, bang: bool, argument: str) -> Statement | None:
        match keyword:
            case None:
                text = segment.lstrip(" \t:")
                if not text or text.startswith('"'):
                    return None
                return CommandLine(segment)
            case "if":
                return self._if(argument)
            case "while":
                return WhileLoop(argument, self._loop_body("endwhile", "while"))
            case "for":
                return self._for(argument)
            case "try":
                return self._try()
            case "function":
                return self._function(argument, bang)
            case "return":
                return ReturnStatement(argument or None)
            case "throw":
                if not argument:
                    raise MissingArgument("Argument required")
                return ThrowStatement(argument)
            case "break":
                if self.loop_depth == 0:
                    raise VimError(":break without :while or :for", "E587")
                return BreakStatement()
            case "continue":
                if self.loop_depth == 0:
                    raise VimError(":continue without :while or :for", "E586")
                return ContinueStatement()
            case "finish":
                return FinishStatement()
            case "delfunction":
                if not argument:
                    raise MissingArgument("Argument required")
                return DeleteFunction(argument, bang)
        raise VimError(f"Not an editor command: {segment.strip()}", "E492")

    def _if(self, condition: str) -> IfStatement:
        branches: list[tuple[str, Block]] = []
        while True:
            body, end, argument = self._block(("elseif", "else", "endif"), "if")
            branches.append((condition, body))
            if end == "elseif":
                condition = argument
                continue
            otherwise = None
            if end == "else":
                otherwise, _, _ = self._block(("endif",), "if")
            return IfStatement(tuple(branches), otherwise)

    def _for(self, argument: str) -> ForLoop:
        m = FOR_RE.fullmatch(argument)
        if m is None:
            raise VimError("Missing \"in\" after :for", "E690")
        header = m.group("targets")
        unpack = header.startswith("[")
        if unpack:
            targets = tuple(t.strip() for t in header[1:-1].split(",") if t.strip())
        else:
            targets = (header,)
        return ForLoop(targets, unpack, m.group("iterable"), self._loop_body("endfor", "for"))

    def _try(self) -> TryStatement:
        body, end, argument = self._block(("catch", "finally", "endtry"), "try")
        catches: list[tuple[str | None, Block]] = []
        finally_body = None
        while end == "catch":
            pattern = parse_catch_pattern(argument)
            handler, end, argument = self._block(("catch", "finally", "endtry"), "try")
            catches.append((pattern, handler))
        if end == "finally":
            finally_body, _, _ = self._block(("endtry",), "try")
        return TryStatement(body, tuple(catches), finally_body)

    def _function(self, argument: str, bang: bool) -> Statement:
        if "(" not in argument:
            return FunctionListing(argument or None)
        m = FUNCTION_RE.fullmatch(argument)
        if m is None:
            raise VimError(f"Invalid argument: {argument}", "E475")
        params: list[str] = []
        has_varargs = False
        for param in (p.strip() for p in m.group("params").split(",")):
            if not param:
                continue
            if param == "...":
                has_varargs = True
            elif has_varargs or not PARAM_RE.fullmatch(param) or param in params:
                raise VimError(f"Illegal argument: {param}", "E125")
            else:
                params.append(param)
        flags = set(m.group("flags").split())
        if unknown := flags - FUNCTION_FLAGS:
            raise VimError(f"Trailing characters: {' '.join(sorted(unknown))}", "E488")
        saved_depth, self.loop_depth = self.loop_depth, 0
        try:
            body, _, _ = self._block(("endfunction",), "function")
        finally:
            self.loop_depth = saved_depth
        return FunctionDefinition(
            name=m.group("name"),
            params=tuple(params),
            body=body,
            has_varargs=has_varargs,
            is_range="range" in flags,
            is_abort="abort" in flags,
            is_dict="dict" in flags,
            is_closure="closure" in flags,
            replace=bang,
        )


def parse_script(text: str) -> Block:
    return ScriptParser(text).parse()
