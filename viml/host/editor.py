"""Text buffer the commands operate on.

`VimEditor` and `VimCaret` are the seams to a real editor; `TextEditor` is
a line based in-memory implementation used by the interpreter when it runs
on its own and by the tests.
"""

from __future__ import annotations

from typing import Protocol


class VimCaret(Protocol):
    line: int
    column: int

    def move_to(self, line: int, column: int | None = None) -> None: ...


class VimEditor(Protocol):
    def carets(self) -> list[VimCaret]: ...

    def primary_caret(self) -> VimCaret: ...

    def line_count(self) -> int: ...

    def line_text(self, line: int) -> str: ...

    def replace_lines(self, start: int, end: int, lines: list[str]) -> None: ...

    def file_size(self) -> int: ...

    def is_writable(self) -> bool: ...

    def in_visual_mode(self) -> bool: ...

    def exit_visual_mode(self) -> None: ...

    def get_mark(self, name: str) -> int | None: ...

    def set_mark(self, name: str, line: int) -> None: ...

    def remove_mark(self, name: str) -> None: ...


class TextCaret:
    """Caret of a TextEditor; line and column are 0-based."""

    __slots__ = ("editor", "line", "column")

    def __init__(self, editor: TextEditor, line: int = 0, column: int = 0):
        self.editor = editor
        self.line = line
        self.column = column

    def move_to(self, line: int, column: int | None = None) -> None:
        """Move to `line`; without a column the caret lands on the first non-blank."""
        line = max(0, min(line, self.editor.line_count() - 1))
        text = self.editor.line_text(line)
        if column is None:
            column = len(text) - len(text.lstrip(" \t"))
        self.line = line
        self.column = max(0, min(column, max(len(text) - 1, 0)))

    def __repr__(self) -> str:
        return f"TextCaret({self.line}, {self.column})"


class TextEditor:
    """In-memory buffer of lines with any number of carets, marks and a visual flag."""

    def __init__(self, text: str = "", carets: list[tuple[int, int]] | None = None, writable: bool = True):
        self.lines: list[str] = text.split("\n")
        if len(self.lines) > 1 and self.lines[-1] == "":
            self.lines.pop()
        self.writable = writable
        self.visual = False
        self.marks: dict[str, int] = {}
        self._carets: list[TextCaret] = [
            TextCaret(self, line, column) for line, column in (carets or [(0, 0)])
        ]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    def carets(self) -> list[TextCaret]:
        """All carets, bottom-most first, the order commands run for each caret."""
        return sorted(self._carets, key=lambda c: (c.line, c.column), reverse=True)

    def primary_caret(self) -> TextCaret:
        return self._carets[0]

    def add_caret(self, line: int, column: int = 0) -> TextCaret:
        caret = TextCaret(self, line, column)
        self._carets.append(caret)
        return caret

    def line_count(self) -> int:
        return len(self.lines)

    def line_text(self, line: int) -> str:
        return self.lines[line]

    def replace_lines(self, start: int, end: int, lines: list[str]) -> None:
        """Replace lines [start, end) with `lines`, shifting carets and marks below the edit."""
        self.lines[start:end] = lines
        if not self.lines:
            self.lines = [""]
        delta = len(lines) - (end - start)
        for caret in self._carets:
            if caret.line >= end:
                caret.line += delta
            elif caret.line >= start + len(lines):
                caret.line = max(start + len(lines) - 1, 0) if lines else start
            caret.line = max(0, min(caret.line, len(self.lines) - 1))
        for name, line in list(self.marks.items()):
            if line >= end:
                self.marks[name] = line + delta
            elif line >= start + len(lines):
                del self.marks[name]

    def file_size(self) -> int:
        return len(self.text.encode())

    def is_writable(self) -> bool:
        return self.writable

    def in_visual_mode(self) -> bool:
        return self.visual

    def exit_visual_mode(self) -> None:
        self.visual = False

    def get_mark(self, name: str) -> int | None:
        return self.marks.get(name)

    def set_mark(self, name: str, line: int) -> None:
        self.marks[name] = line

    def remove_mark(self, name: str) -> None:
        self.marks.pop(name, None)
