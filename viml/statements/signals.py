"""Non-local exits of the statement executor.

These are not script errors: they unwind the Python stack to the statement
that handles them (:return to the function call, :break and :continue to
the loop, :finish to the sourced script).
"""

from __future__ import annotations

from viml.types.values import VimInt, VimValue


class ReturnSignal(Exception):
    def __init__(self, value: VimValue | None = None):
        super().__init__("return")
        self.value = value if value is not None else VimInt(0)


class BreakSignal(Exception):
    pass


class ContinueSignal(Exception):
    pass


class FinishSignal(Exception):
    pass
