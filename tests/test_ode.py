import math

import numpy as np
import pytest

from eqgraph.config import OdeSettings
from eqgraph.ode import OdeSolver


def test_exponential_growth_forward_and_backward():
    step = OdeSolver(lambda t, y: [y[0]], 1).integrate(0.0, [1.0])
    assert step(0.0)[0] == 1.0
    assert step(2.0)[0] == pytest.approx(math.exp(2.0), rel=1e-4)
    assert step(-2.0)[0] == pytest.approx(math.exp(-2.0), rel=1e-4)

def test_continuation_matches_fresh_integration():
    solver = OdeSolver(lambda t, y: [math.cos(t)], 1)
    step = solver.integrate(0.0, [0.0])
    for t in (0.5, 1.0, 1.5, 2.0):
        assert step(t)[0] == pytest.approx(math.sin(t), abs=1e-5)
    # going back towards t0 restarts from the initial condition
    assert step(0.25)[0] == pytest.approx(math.sin(0.25), abs=1e-5)

def test_undefined_rhs_component_becomes_nan():
    step = OdeSolver(lambda t, y: [None], 1).integrate(0.0, [0.0])
    assert np.isnan(step(1.0)[0])

def test_settings_are_used():
    settings = OdeSettings(method="DOP853", rtol=1e-10, atol=1e-12)
    solver = OdeSolver(lambda t, y: [2 * t], 1, settings)
    assert solver.integrate(1.0, [1.0])(3.0)[0] == pytest.approx(9.0, rel=1e-9)

def test_step_returns_copies():
    step = OdeSolver(lambda t, y: [0.0], 1).integrate(0.0, [5.0])
    out = step(0.0)
    out[0] = -1
    assert step(0.0)[0] == 5.0
