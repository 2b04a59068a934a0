# -----------------------------------------------------------------------------
# Types module: Shared dataclasses for the universe builder
# Purpose:
#   Define the reserved symbols, visual roles, per-expression metadata and
#   dependency records passed between the preprocessor, the dependency
#   analyzer, the hot/cold classifier and the evaluation engine.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Literal

# Controlled variables: supplied per sample, never derived from user input.
INDEPENDENT = "x"
DEPENDENT = "y"
TIME = "t"
CONTROLLED_VARIABLES = (INDEPENDENT, DEPENDENT, TIME)

# Derivative of the dependent variable (left side of an isolated ODE).
DERIVATIVE = DEPENDENT + "'"

VisualType = Literal["value", "curve", "field", "novisual"]
ExpressionKind = Literal["empty", "value", "assignment", "function"]

@dataclass
class DependencyRecord:
    """
    Free-symbol dependencies of one expression.
    - dependencies: symbol names referenced by the expression, in first-seen
      order, excluding bound function parameters
    - expr_index: index of the originating expression in the input list
    """
    dependencies: List[str] = field(default_factory=list)
    expr_index: int = 0

@dataclass(frozen=True)
class Metadata:
    """
    Visualization role of one expression, fixed at universe construction.
    Example:
        "y = x^2"  -> Metadata(type="curve", hot=True, dependent_var="y")
        "y' = x"   -> Metadata(type="field", hot=True, dependent_var="y")
        "a = 2"    -> Metadata(type="value", hot=False)
    """
    type: VisualType
    hot: bool = False
    dependent_var: Optional[str] = None

class FieldState(NamedTuple):
    # (instantaneous slope, integrated-curve value); either may be undefined.
    slope: Optional[float] = None
    curve: Optional[float] = None
