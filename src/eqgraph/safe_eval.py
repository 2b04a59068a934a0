# -----------------------------------------------------------------------------
# Safe mathematical evaluator (controlled environment)
# Purpose:
#   Compile a Python expression string once, then evaluate it any number of
#   times against caller-supplied bindings (numbers or callables) using only
#   whitelisted math functions/constants, blocking all builtins or globals.
# Safety:
#   - `__builtins__` disabled (prevents arbitrary code execution).
#   - Only math module names, abs/min/max and provided bindings are visible.
# Semantics:
#   - A name missing from both the whitelist and the bindings evaluates to
#     None (undefined) instead of raising.
#   - Arithmetic domain failures (1/0, sqrt(-1), overflow) evaluate to nan,
#     the float result a plotting evaluator is expected to draw around.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
import numbers
from types import CodeType
from typing import Any, Dict, Mapping

# Whitelisted math functions/constants, plus the few builtins sympy's code
# printer emits (Abs -> abs, Min -> min, Max -> max).
ALLOWED: Dict[str, Any] = {
    name: getattr(math, name) for name in dir(math) if not name.startswith("_")
}
ALLOWED.update({"abs": abs, "min": min, "max": max, "ln": math.log})


def compile_source(source: str, label: str = "<expression>") -> CodeType:
    """Compile `source` in eval mode; syntax errors propagate unmodified."""
    return compile(source, label, "eval")


def safe_eval(code: CodeType | str, vars: Mapping[str, Any]) -> Any:
    """
    Evaluate compiled code (or a source string) in a restricted environment.

    Parameters
    ----------
    code : CodeType | str
        Output of `compile_source`, or an expression string such as
        "a**2 + sin(x)".
    vars : Mapping[str, Any]
        Bindings for the free names of the expression. Values may be numbers
        or callables (user-defined functions).

    Returns
    -------
    Any
        A float for numeric results, the raw object for non-numeric results
        (e.g. a callable), None when a name is unbound, nan on arithmetic
        domain errors.
    """
    if isinstance(code, str):
        code = compile_source(code)
    # Disable all builtins for safety; bindings shadow the whitelist
    env: Dict[str, Any] = {"__builtins__": {}}
    env.update(ALLOWED)
    env.update(vars)
    try:
        result = eval(code, env, {})
    except NameError:
        return None
    except (ArithmeticError, ValueError):
        return math.nan
    if isinstance(result, numbers.Real):
        try:
            return float(result)
        except OverflowError:
            # exact integers such as 10**400 have no float form
            return math.nan
    if isinstance(result, numbers.Complex):
        # Complex results have no place on a real plane
        return math.nan
    return result
