"""Ex command base class and the flags the dispatcher validates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, ClassVar

from viml.host.editor import VimCaret
from viml.reader.ranges import LineRange, Range
from viml.types.context import ExecutionContext

if TYPE_CHECKING:
    from viml.interpreter import Interpreter


class RangeFlag(Enum):
    RANGE_FORBIDDEN = auto()
    RANGE_OPTIONAL = auto()
    RANGE_REQUIRED = auto()
    # a single number is a count (:@a 3); a missing range means line 1
    RANGE_IS_COUNT = auto()


class ArgumentFlag(Enum):
    ARGUMENT_FORBIDDEN = auto()
    ARGUMENT_OPTIONAL = auto()
    ARGUMENT_REQUIRED = auto()


class Access(Enum):
    READ_ONLY = auto()
    WRITABLE = auto()
    SELF_SYNCHRONIZED = auto()


class Flag(Enum):
    SAVE_VISUAL = auto()


class ExecutionShape(Enum):
    SINGLE_EXECUTION = auto()
    FOR_EACH_CARET = auto()


class ExecutionResult(Enum):
    SUCCESS = auto()
    ERROR = auto()


@dataclass(frozen=True)
class CommandHandlerFlags:
    range: RangeFlag = RangeFlag.RANGE_FORBIDDEN
    argument: ArgumentFlag = ArgumentFlag.ARGUMENT_OPTIONAL
    access: Access = Access.READ_ONLY
    flags: frozenset[Flag] = frozenset()


class Command:
    """One parsed command line.

    Subclasses declare `flags` and `shape` and implement `execute`, which
    runs once per call: once in total for SINGLE_EXECUTION, once per caret
    for FOR_EACH_CARET. A failure is either raised as a VimError or returned
    as ExecutionResult.ERROR after reporting it to the host.
    """

    __slots__ = ("range", "name", "argument", "bang", "text")

    flags: ClassVar[CommandHandlerFlags] = CommandHandlerFlags()
    shape: ClassVar[ExecutionShape] = ExecutionShape.SINGLE_EXECUTION
    accepts_bang: ClassVar[bool] = False

    def __init__(self, range: Range, name: str, argument: str, bang: bool, text: str):
        self.range = range
        self.name = name
        self.argument = argument
        self.bang = bang
        self.text = text

    def line_range(self, vim: Interpreter, caret: VimCaret) -> LineRange:
        return self.range.line_range(
            vim.host.editor,
            caret,
            bool(vim.options.get("wrapscan")),
            vim.options.ignorecase,
        )

    def count(self, vim: Interpreter, caret: VimCaret) -> int:
        return self.range.count(vim.host.editor, caret)

    def with_range(self, range: Range) -> Command:
        """A copy running over `range`; the parsed command is left as it is."""
        return type(self)(range, self.name, self.argument, self.bang, self.text)

    def execute(self, vim: Interpreter, context: ExecutionContext, caret: VimCaret) -> ExecutionResult:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.text!r})"
