"""
  :substitute

`:[range]s[ubstitute]/{pattern}/{string}/[flags] [count]`

Flags: & keeps the previous flags, g replaces every match in the line (its
meaning flips with 'gdefault'), e suppresses the no-match error, i and I
force the case, n only counts matches. Without a pattern the previous
search pattern is used; `:s` and `:&` alone repeat the previous substitute.

The replacement understands &, ~, \\0 - \\9, \\r, \\n, \\t, \\u, \\U, \\l,
\\L, \\e, \\E, and `\\=` for an expression evaluated per match with
submatch() giving the groups.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from viml.commands.command import (
    Access,
    ArgumentFlag,
    Command,
    CommandHandlerFlags,
    ExecutionResult,
    ExecutionShape,
    RangeFlag,
)
from viml.commands.execution import check_delimiter, split_pattern
from viml.errors import NoArgumentAllowed, VimError
from viml.evaluation.regex import compile_pattern
from viml.host.editor import VimCaret
from viml.reader.parser import parse_expression
from viml.reader.ranges import LineRange
from viml.types.coercion import to_string
from viml.types.context import ExecutionContext
from viml.types.values import VimList

if TYPE_CHECKING:
    from viml.interpreter import Interpreter

logger = logging.getLogger(__name__)

FLAGS_RE = re.compile(r"\s*(?P<flags>[&cegiInp#lr]*)\s*(?P<count>\d*)\s*")
TILDE_RE = re.compile(r"(?<!\\)~")


@dataclass(frozen=True)
class Substitution:
    """The parts of the last :substitute, for repeating it."""
    pattern: str
    replacement: str
    flags: str


def expand_replacement(replacement: str, m: re.Match) -> str:
    """Text for one match of a plain (non-expression) replacement."""
    out: list[str] = []
    # one-shot and sticky case modes: \u \l apply to the next character, \U \L until \e
    one_shot: str | None = None
    sticky: str | None = None

    def emit(text: str) -> None:
        nonlocal one_shot
        for c in text:
            if sticky == "U":
                c = c.upper()
            elif sticky == "L":
                c = c.lower()
            if one_shot == "u":
                c = c.upper()
            elif one_shot == "l":
                c = c.lower()
            one_shot = None
            out.append(c)

    i = 0
    while i < len(replacement):
        c = replacement[i]
        if c == "\\" and i + 1 < len(replacement):
            nxt = replacement[i + 1]
            i += 2
            match nxt:
                case d if d.isdigit():
                    group = int(d)
                    emit((m.group(group) or "") if group <= m.re.groups else "")
                case "r" | "n":
                    out.append("\n")
                case "t":
                    emit("\t")
                case "u" | "l":
                    one_shot = nxt
                case "U" | "L":
                    sticky = nxt
                case "e" | "E":
                    sticky = None
                case _:
                    emit(nxt)
            continue
        if c == "&":
            emit(m.group(0))
        elif c == "\r":
            out.append("\n")
        else:
            emit(c)
        i += 1
    return "".join(out)


class SubstituteCommand(Command):
    __slots__ = ()
    flags = CommandHandlerFlags(RangeFlag.RANGE_OPTIONAL, ArgumentFlag.ARGUMENT_OPTIONAL, Access.WRITABLE)
    shape = ExecutionShape.FOR_EACH_CARET

    def _parse(self, vim: Interpreter) -> tuple[Substitution, int | None]:
        text = self.argument
        previous = vim.last_substitute
        if not text.strip() or text.lstrip()[0] in "&cegiInplr" or text.lstrip()[0].isdigit():
            if previous is None:
                raise VimError("No previous substitute regular expression", "E35")
            pattern, replacement, rest = previous.pattern, previous.replacement, text
            keep_flags = previous.flags
        else:
            text = text.lstrip()
            check_delimiter(text)
            pattern, rest, closed = split_pattern(text)
            replacement, rest, _ = split_pattern(text[0] + rest) if closed else ("", "", False)
            if not replacement.startswith("\\="):
                # ~ is the previous replacement string
                replacement = TILDE_RE.sub(lambda _: previous.replacement if previous else "", replacement)
            keep_flags = ""
            if not pattern:
                if vim.last_search_pattern is None:
                    raise VimError("No previous regular expression", "E35")
                pattern = vim.last_search_pattern

        m = FLAGS_RE.fullmatch(rest)
        if m is None:
            raise NoArgumentAllowed(f"Trailing characters: {rest.strip()}")
        flags = m.group("flags")
        if flags.startswith("&"):
            flags = keep_flags + flags[1:]
        count = int(m.group("count")) if m.group("count") else None
        return Substitution(pattern, replacement, flags), count

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        substitution, count = self._parse(vim)
        vim.last_substitute = substitution
        vim.last_search_pattern = substitution.pattern
        flags = substitution.flags

        ignore_case = vim.options.ignorecase
        smart_case = bool(vim.options.get("smartcase"))
        if "i" in flags:
            ignore_case, smart_case = True, False
        elif "I" in flags:
            ignore_case, smart_case = False, False
        pattern = compile_pattern(substitution.pattern, ignore_case, smart_case)
        replace_all = ("g" in flags) != bool(vim.options.get("gdefault"))

        line_range = self.line_range(vim, caret)
        if count is not None:
            end = min(line_range.end_line + count - 1, vim.host.editor.line_count() - 1)
            line_range = LineRange(line_range.end_line, end)

        if "n" in flags:
            return self._count(vim, pattern, substitution.pattern, line_range, replace_all)
        changed = self._substitute(vim, context, pattern, substitution.replacement, line_range, replace_all)
        if changed is None:
            if "e" in flags:
                return ExecutionResult.SUCCESS
            vim.host.messages.show_message(f"E486: Pattern not found: {substitution.pattern}", keep=True)
            return ExecutionResult.ERROR
        caret.move_to(changed)
        return ExecutionResult.SUCCESS

    def _replacement_text(self, vim: Interpreter, context: ExecutionContext, replacement: str,
                          m: re.Match) -> str:
        if not replacement.startswith("\\="):
            return expand_replacement(replacement, m)
        vim.current_match = m
        try:
            value = vim.eval_fn(parse_expression(replacement[2:]), vim, context)
        finally:
            vim.current_match = None
        if isinstance(value, VimList):
            return "\n".join(to_string(item) for item in value.values)
        return to_string(value)

    def _substitute(self, vim: Interpreter, context: ExecutionContext, pattern: re.Pattern,
                    replacement: str, line_range: LineRange, replace_all: bool) -> int | None:
        """Replace in every line of the range; returns the last changed line or None."""
        editor = vim.host.editor
        last_changed: int | None = None
        line = line_range.start_line
        end = line_range.end_line
        while line <= end:
            text = editor.line_text(line)
            pieces: list[str] = []
            position = 0
            for m in pattern.finditer(text):
                pieces.append(text[position:m.start()])
                pieces.append(self._replacement_text(vim, context, replacement, m))
                position = m.end()
                if not replace_all:
                    break
            if not pieces:
                line += 1
                continue
            pieces.append(text[position:])
            new_lines = "".join(pieces).split("\n")
            editor.replace_lines(line, line + 1, new_lines)
            end += len(new_lines) - 1
            line += len(new_lines)
            last_changed = line - 1
        if last_changed is not None:
            logger.debug("substituted %s up to line %d", pattern.pattern, last_changed)
        return last_changed

    @staticmethod
    def _count(vim: Interpreter, pattern: re.Pattern, source: str, line_range: LineRange,
               replace_all: bool) -> ExecutionResult:
        editor = vim.host.editor
        matches = lines = 0
        for line in range(line_range.start_line, line_range.end_line + 1):
            found = len(pattern.findall(editor.line_text(line)))
            if found:
                lines += 1
                matches += found if replace_all else 1
        if not matches:
            vim.host.messages.show_message(f"E486: Pattern not found: {source}", keep=True)
            return ExecutionResult.ERROR
        noun = "match" if matches == 1 else "matches"
        vim.host.messages.show_message(f"{matches} {noun} on {lines} line{'s' if lines != 1 else ''}")
        return ExecutionResult.SUCCESS


COMMANDS = [
    ("s", "ubstitute", SubstituteCommand),
    ("&", "", SubstituteCommand),
]


def register(table: list) -> None:
    table.extend(COMMANDS)
