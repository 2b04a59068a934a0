# -----------------------------------------------------------------------------
# ODE integrator adapter
# Purpose:
#   Expose scipy's solve_ivp through a small initial-value-problem contract:
#       solver = OdeSolver(rhs, dimension)
#       step = solver.integrate(t0, y0)
#       y = step(t)          # solution vector at any t, before or after t0
# Notes:
#   - `rhs(t, y)` receives a numpy vector and returns a sequence of floats;
#     an undefined (None) or non-finite component ends the integration and
#     the step function reports nan for that t.
#   - The step function is stateful: moving further away from t0 on the same
#     side continues from the last sampled point instead of restarting.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.integrate import solve_ivp

from .config import OdeSettings

Rhs = Callable[[float, np.ndarray], Sequence[Optional[float]]]


class _UndefinedSlope(Exception):
    # solve_ivp never shrinks its way out of a nan error estimate
    pass


class StepFunction:
    """Solution of one initial-value problem, sampled lazily at arbitrary t."""

    def __init__(self, fun: Callable, t0: float, y0: np.ndarray, settings: OdeSettings):
        self.t0 = float(t0)
        self.y0 = y0
        self.settings = settings
        self._fun = fun
        self._last_t = self.t0
        self._last_y = y0

    def _start_for(self, t: float):
        # Resume from the last sample when it lies between t0 and t
        if (t - self.t0) * (self._last_t - self.t0) > 0 and abs(t - self.t0) >= abs(self._last_t - self.t0):
            return self._last_t, self._last_y
        return self.t0, self.y0

    def __call__(self, t: float) -> np.ndarray:
        t = float(t)
        if t == self.t0:
            return self.y0.copy()
        start_t, start_y = self._start_for(t)
        if t == start_t:
            return start_y.copy()
        try:
            sol = solve_ivp(
                self._fun, (start_t, t), start_y,
                method=self.settings.method, rtol=self.settings.rtol, atol=self.settings.atol,
            )
        except _UndefinedSlope:
            return np.full(self.y0.shape, np.nan)
        if not sol.success:
            return np.full(self.y0.shape, np.nan)
        y = sol.y[:, -1]
        self._last_t, self._last_y = t, y
        return y.copy()


class OdeSolver:
    def __init__(self, rhs: Rhs, dimension: int, settings: Optional[OdeSettings] = None):
        self.rhs = rhs
        self.dimension = dimension
        self.settings = settings or OdeSettings()

    def _fun(self, t: float, y: np.ndarray) -> np.ndarray:
        out = np.array([math.nan if v is None else float(v) for v in self.rhs(t, y)], dtype=float)
        if not np.all(np.isfinite(out)):
            raise _UndefinedSlope(t)
        return out

    def integrate(self, t0: float, y0: Sequence[float]) -> StepFunction:
        y0_vec = np.asarray(y0, dtype=float).reshape(self.dimension)
        return StepFunction(self._fun, t0, y0_vec, self.settings)
