"""State threaded explicitly through evaluation and command dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from viml import config
from viml.types.function import FunctionDeclaration, Lambda
from viml.types.values import VimDictionary


@dataclass(eq=False)
class FunctionFrame:
    """Locals and arguments of one function or lambda invocation."""
    function: FunctionDeclaration | Lambda
    local: VimDictionary = field(default_factory=VimDictionary)
    arguments: VimDictionary = field(default_factory=VimDictionary)
    self_dict: VimDictionary | None = None
    outer: FunctionFrame | None = None

    @property
    def is_lambda(self) -> bool:
        return isinstance(self.function, Lambda)


@dataclass(frozen=True)
class ExecutionContext:
    """Per-invocation dispatcher state.

    - skip_history: do not record the command line (used by :@ and :execute)
    - alias_depth: remaining user-command expansions before giving up
    - in_global: running under :global, which may not nest
    - frame: the current function frame, None at script or command level
    - script: the s: dictionary of the script being sourced, if any
    - call_depth: nesting of user function calls
    - current_line: 1-based caret line, the default a:firstline and a:lastline
    """
    skip_history: bool = False
    alias_depth: int = field(default_factory=config.get_max_alias_depth)
    in_global: bool = False
    frame: FunctionFrame | None = None
    script: VimDictionary | None = None
    call_depth: int = 0
    current_line: int = 1

    def nested(self, **changes) -> ExecutionContext:
        return replace(self, **changes)
