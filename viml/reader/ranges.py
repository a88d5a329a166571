"""Line ranges of Ex commands.

A range is a sequence of addresses separated by ',' or ';'. Each address is
a line number, '.', '$', a mark ('x), a forward (/pat/) or backward (?pat?)
search, or nothing (the current line), followed by any number of +N/-N
offsets. '%' stands for `1,$`. With ';' the cursor line moves to the
previous address before the next one is resolved.

Lines are 0-based inside the runtime; addresses are written 1-based.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import re

from viml.errors import InvalidRange, VimError
from viml.evaluation.regex import compile_pattern
from viml.host.editor import VimCaret, VimEditor


OFFSET_RE = re.compile(r"\s*([+-])(\d*)")
NUMBER_RE = re.compile(r"\d+")


class MarkNotSet(VimError):
    """ Raised when a range refers to a mark that is not set"""
    code = "E20"


class PatternNotFound(VimError):
    """ Raised when a search address or :substitute finds no match"""
    code = "E486"


@dataclass(frozen=True)
class LineRange:
    start_line: int
    end_line: int

    @property
    def size(self) -> int:
        return self.end_line - self.start_line + 1

    @property
    def start_line1(self) -> int:
        return self.start_line + 1

    @property
    def end_line1(self) -> int:
        return self.end_line + 1


@dataclass(frozen=True)
class Address:
    """One address; `kind` is 'line', 'current', 'last', 'mark', 'search' or 'backsearch'."""
    kind: str
    value: int | str = 0
    offset: int = 0
    move_cursor: bool = False

    def resolve(self, editor: VimEditor, line: int, wrapscan: bool = True, ignore_case: bool = False) -> int:
        """0-based line of this address relative to cursor `line`."""
        match self.kind:
            case "line":
                base = int(self.value) - 1
            case "current":
                base = line
            case "last":
                base = editor.line_count() - 1
            case "mark":
                mark = editor.get_mark(str(self.value))
                if mark is None:
                    raise MarkNotSet("Mark not set")
                base = mark
            case "search" | "backsearch":
                base = self._search(editor, line, wrapscan, ignore_case)
            case _:
                raise InvalidRange("Invalid range")
        return base + self.offset

    def _search(self, editor: VimEditor, line: int, wrapscan: bool, ignore_case: bool) -> int:
        pattern = compile_pattern(str(self.value), ignore_case)
        count = editor.line_count()
        step = 1 if self.kind == "search" else -1
        for i in range(1, count + 1):
            candidate = line + step * i
            if not wrapscan and not 0 <= candidate < count:
                break
            candidate %= count
            if pattern.search(editor.line_text(candidate)):
                return candidate
        raise PatternNotFound(f"Pattern not found: {self.value}")


@dataclass(frozen=True)
class Range:
    addresses: tuple[Address, ...] = ()
    default_line: int | None = None

    def size(self) -> int:
        return len(self.addresses)

    def __bool__(self) -> bool:
        return bool(self.addresses) or self.default_line is not None

    def with_default_line(self, line1: int) -> Range:
        """Range used when a command counts from its range: a missing range becomes `line1`."""
        if self.addresses:
            return self
        return replace(self, default_line=line1)

    def line_range(self, editor: VimEditor, caret: VimCaret, wrapscan: bool = True,
                   ignore_case: bool = False) -> LineRange:
        if not self.addresses:
            if self.default_line is not None:
                line = self.default_line - 1
                return LineRange(line, line)
            return LineRange(caret.line, caret.line)
        cursor = caret.line
        lines: list[int] = []
        for address in self.addresses:
            resolved = address.resolve(editor, cursor, wrapscan, ignore_case)
            lines.append(resolved)
            if address.move_cursor:
                cursor = resolved
        start, end = (lines[-2], lines[-1]) if len(lines) > 1 else (lines[0], lines[0])
        if start > end:
            start, end = end, start
        if end >= editor.line_count() or start < -1:
            raise InvalidRange("Invalid range")
        return LineRange(max(start, 0), max(end, 0))

    def count(self, editor: VimEditor, caret: VimCaret) -> int:
        """The last address, 1-based, as a count; unlike a line it may lie past the buffer."""
        if not self.addresses:
            return self.default_line if self.default_line is not None else caret.line + 1
        cursor = line = caret.line
        for address in self.addresses:
            line = address.resolve(editor, cursor)
            if address.move_cursor:
                cursor = line
        return line + 1


def _parse_pattern(text: str, i: int, delimiter: str) -> tuple[str, int]:
    j = i
    while j < len(text) and text[j] != delimiter:
        if text[j] == "\\" and j + 1 < len(text):
            j += 1
        j += 1
    pattern = text[i:j].replace("\\" + delimiter, delimiter)
    return pattern, min(j + 1, len(text))


def _parse_address(text: str, i: int) -> tuple[Address | None, int]:
    n = len(text)
    address: Address | None = None
    if i < n:
        c = text[i]
        if c.isdigit():
            m = NUMBER_RE.match(text, i)
            address = Address("line", int(m.group()))
            i = m.end()
        elif c == ".":
            address = Address("current")
            i += 1
        elif c == "$":
            address = Address("last")
            i += 1
        elif c == "'" and i + 1 < n:
            address = Address("mark", text[i + 1])
            i += 2
        elif c == "/":
            pattern, i = _parse_pattern(text, i + 1, "/")
            address = Address("search", pattern)
        elif c == "?":
            pattern, i = _parse_pattern(text, i + 1, "?")
            address = Address("backsearch", pattern)
    offset = 0
    has_offset = False
    while (m := OFFSET_RE.match(text, i)) and m.end() > i:
        amount = int(m.group(2)) if m.group(2) else 1
        offset += amount if m.group(1) == "+" else -amount
        has_offset = True
        i = m.end()
    if address is None and has_offset:
        address = Address("current")
    if address is not None and offset:
        address = replace(address, offset=offset)
    return address, i


def parse_range(text: str, i: int = 0) -> tuple[Range, int]:
    """Parse the range prefix of a command line starting at `i`."""
    n = len(text)
    while i < n and text[i] in " \t:":
        i += 1
    if i < n and text[i] == "%":
        i += 1
        addresses = [Address("line", 1), Address("last")]
        address, i = _parse_address(text, i)
        if address is not None and address.kind == "current":
            addresses[-1] = replace(addresses[-1], offset=address.offset)
        return Range(tuple(addresses)), i
    addresses: list[Address] = []
    while True:
        address, i = _parse_address(text, i)
        separator = text[i] if i < n and text[i] in ",;" else None
        if address is None and separator is not None:
            address = Address("current")
        if address is not None:
            addresses.append(replace(address, move_cursor=separator == ";"))
        if separator is None:
            break
        i += 1
        if i >= n or text[i] in " \t" or text[i].isalpha():
            # trailing separator means the current line
            addresses.append(Address("current"))
            break
    return Range(tuple(addresses)), i
