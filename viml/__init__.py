# Core type aliases for the Vim script runtime.
# Values are the VimDataType classes of viml.types.values; expressions are the
# frozen dataclasses of viml.reader.expressions.
#
# Naming guidance:
# - VimValue: any evaluated value, as stored in variables and containers.
# - EvaluatorFn: the evaluator held on `vim.eval_fn`. Function bodies, statement
#   conditions and `\=` replacements evaluate through it; commands and builtins
#   that take an expression argument import `evaluate` directly.

from typing import Any, Callable

# Evaluator function type: (expression, interpreter, context) -> VimValue
EvaluatorFn = Callable[..., Any]
