# -----------------------------------------------------------------------------
# Universe: staged evaluation engine
# Responsibilities:
#   • Build: preprocess → dependency map → support check → ordering →
#     hot/cold classification → compile → one-off cold evaluation
#   • ode_initial_conditions: (re)seed one integrator per vector field
#   • eval_with: refresh every hot entry for one (x, y) sample point
# Scope handling:
#   Each hot entry is evaluated against a fresh snapshot
#       cold scope ∪ hot bindings computed so far ∪ controlled bindings
#   with the controlled bindings applied last, so no entry can observe
#   another entry's view of x, y or t.
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Any, Dict, List, Optional

from .classifier import classify
from .config import Settings
from .dependencies import build_dependency_map, check_supported, dependency_analysis
from .expressions import ParsedExpression, preprocess
from .ode import OdeSolver, StepFunction
from .tracer import Tracer
from .types import DEPENDENT, INDEPENDENT, TIME, FieldState, Metadata


def controls(indep: float, dep: float) -> Dict[str, float]:
    # Time is aliased to the independent variable: one effective free axis
    return {INDEPENDENT: indep, DEPENDENT: dep, TIME: indep}


class Universe:
    """
    Evaluation engine for one input list. Structure is fixed after
    construction; only `state` (and the integrator map) change.
    """

    def __init__(
        self,
        expressions: List[ParsedExpression],
        metadata: List[Metadata],
        priority_indices: List[int],
        settings: Optional[Settings] = None,
        tracer: Optional[Tracer] = None,
    ):
        self.expressions = expressions
        self.metadata = metadata
        self.priority_indices = priority_indices
        self.settings = settings or Settings()
        self.tracer = tracer or Tracer()
        self.compiled = [expr.compile() for expr in expressions]
        self.state: List[Any] = [None] * len(expressions)
        self.cold_scope: Dict[str, Any] = {}
        self._integrators: Dict[int, StepFunction] = {}
        self._evaluate_cold()

    # ---------------- views ----------------

    @property
    def curve_indices(self) -> List[int]:
        return [i for i, m in enumerate(self.metadata) if m.type == "curve"]

    @property
    def field_indices(self) -> List[int]:
        return [i for i, m in enumerate(self.metadata) if m.type == "field"]

    @property
    def trace(self) -> List[Dict[str, Any]]:
        return self.tracer.steps()

    def has_integrator(self, index: int) -> bool:
        return index in self._integrators

    # ---------------- evaluation ----------------

    def _evaluate_cold(self):
        for i in self.priority_indices:
            if self.metadata[i].hot:
                continue
            value = self.compiled[i].evaluate(self.cold_scope)
            self.state[i] = value
            name = self.expressions[i].binding
            if name is not None and value is not None:
                self.cold_scope[name] = value
        self.tracer.add("cold_eval", {
            "bound": sorted(self.cold_scope),
            "undefined": [i for i in self.priority_indices
                          if not self.metadata[i].hot and self.state[i] is None],
        })

    def _hot_scope(self, indep: float, dep: float, stop_at: int) -> Dict[str, Any]:
        """
        Scope seen by the entry at priority position `stop_at`: hot named
        values preceding it are recomputed for (indep, dep).
        """
        ctl = controls(indep, dep)
        bound: Dict[str, Any] = {}
        for i in self.priority_indices:
            if i == stop_at:
                break
            name = self.expressions[i].binding
            if name is None or not self.metadata[i].hot:
                continue
            value = self.compiled[i].evaluate({**self.cold_scope, **bound, **ctl})
            if value is not None:
                bound[name] = value
        return {**self.cold_scope, **bound, **ctl}

    def ode_initial_conditions(self, y0: float, t0: float) -> None:
        """
        Seed an integrator for every field at (t0, y0). Previously cached
        integrators are discarded wholesale.
        """
        integrators: Dict[int, StepFunction] = {}
        for i in self.field_indices:
            compiled = self.compiled[i]

            def rhs(t, y, i=i, compiled=compiled):
                scope = self._hot_scope(t, y[0], stop_at=i)
                return [compiled.evaluate(scope)]

            solver = OdeSolver(rhs, 1, self.settings.ode)
            integrators[i] = solver.integrate(t0, [y0])
        self._integrators = integrators
        self.tracer.add("ode_seeded", {"fields": sorted(integrators), "y0": y0, "t0": t0})

    def eval_with(self, indep: float, dep: float, include_vector_fields: bool = False) -> "Universe":
        """
        Re-evaluate every hot entry at (indep, dep); cold entries keep their
        construction-time value. Fields store FieldState(slope, curve): the
        slope only when include_vector_fields is set, the curve only once
        ode_initial_conditions has been called.
        """
        ctl = controls(indep, dep)
        bound: Dict[str, Any] = {}
        for i in self.priority_indices:
            meta = self.metadata[i]
            if not meta.hot:
                continue
            scope = {**self.cold_scope, **bound, **ctl}
            if meta.type == "field":
                step = self._integrators.get(i)
                curve = float(step(indep)[0]) if step is not None else None
                slope = self.compiled[i].evaluate(scope) if include_vector_fields else None
                self.state[i] = FieldState(slope, curve)
                continue
            value = self.compiled[i].evaluate(scope)
            self.state[i] = value
            name = self.expressions[i].binding
            if name is not None and value is not None:
                bound[name] = value
        return self


def build_universe(inputs: List[str], settings: Optional[Settings] = None,
                   tracer: Optional[Tracer] = None) -> Universe:
    """
    Build a universe from an ordered list of expression strings.
    All-or-nothing: syntax errors and DependencyError subclasses propagate
    and no partial universe is returned.
    """
    tracer = tracer or Tracer()
    expressions = preprocess(list(inputs))
    for expr in expressions:
        tracer.add("parsed", {
            "index": expr.index, "kind": expr.kind, "name": expr.name,
            "params": list(expr.params), "dependencies": expr.symbols(),
        })

    dep_map, formulae = build_dependency_map(expressions)
    check_supported(dep_map)
    order = dependency_analysis(dep_map)
    tracer.add("dependency_order", {"order": order, "formulae": formulae})

    metadata = classify(expressions, dep_map, order, formulae)
    tracer.add("hotness", {"hot": [i for i, m in enumerate(metadata) if m.hot]})
    promoted = [i for i, m in enumerate(metadata)
                if m.type == "curve" and expressions[i].initial_metadata().type == "value"]
    if promoted:
        tracer.add("promoted", {"indices": promoted})

    # Formulae are lowest priority: they may depend on anything, nothing depends on them
    formula_set = set(formulae)
    priority = [dep_map[key].expr_index for key in order
                if dep_map[key].expr_index not in formula_set]
    priority.extend(formulae)

    return Universe(expressions, metadata, priority, settings=settings, tracer=tracer)
