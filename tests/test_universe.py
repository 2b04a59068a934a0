import math

import pytest

from eqgraph.dependencies import CircularDependency, UnsupportedFeature
from eqgraph.expressions import ExpressionSyntaxError
from eqgraph.types import FieldState
from eqgraph.universe import build_universe


def test_cold_round_trip():
    u = build_universe(["a=2", "b=3", "c=a+b"])
    assert u.state[2] == 5
    assert all(not m.hot for m in u.metadata)
    assert all(m.type == "value" for m in u.metadata)
    assert u.cold_scope == {"a": 2, "b": 3, "c": 5}

def test_function_and_formula_priority():
    u = build_universe(["f(x)=5x", "f(10)"])
    assert u.state[1] == 50
    assert u.priority_indices == [0, 1]
    assert callable(u.state[0])

def test_formulae_scheduled_last():
    u = build_universe(["2a", "a = b + 1", "", "b = 4"])
    assert u.priority_indices[-2:] == [0, 2]
    assert u.priority_indices[:2] == [3, 1]
    assert u.state[0] == 10
    assert u.state[2] is None

def test_hot_entries_unset_until_evaluated():
    u = build_universe(["a = 3", "y = a x"])
    assert u.state[1] is None
    assert u.eval_with(2, 0) is u
    assert u.state[1] == 6
    u.eval_with(-1, 0)
    assert u.state[1] == -3
    assert u.state[0] == 3

def test_hot_chain_uses_current_sample():
    u = build_universe(["z = k + 1", "k = x*2"])
    u.eval_with(3, 0)
    assert u.state[1] == 6
    assert u.state[0] == 7
    assert u.metadata[0].type == "curve"

def test_curve_does_not_leak_into_controlled_bindings():
    # "y = x + 1" must not rebind y for the later entry
    u = build_universe(["y = x + 1", "w = y*2", "t + y"])
    u.eval_with(2, 5)
    assert u.state[0] == 3
    assert u.state[1] == 10
    # t is aliased to x
    assert u.state[2] == 7

def test_field_slope_and_integrated_curve():
    u = build_universe(["y'=x^2"])
    u.ode_initial_conditions(0, 0)
    u.eval_with(2, 0, True)
    slope, curve = u.state[0]
    assert slope == 4
    assert curve == pytest.approx(8 / 3, rel=1e-4)

def test_field_slope_only_when_requested():
    u = build_universe(["y' = x + y"])
    u.eval_with(1, 2)
    assert u.state[0] == FieldState(None, None)
    u.eval_with(1, 2, True)
    assert u.state[0] == FieldState(3.0, None)

def test_field_depending_on_state_integrates():
    # y' = y, y(0) = 1  ->  y = e^x
    u = build_universe(["y' = y"])
    u.ode_initial_conditions(1, 0)
    u.eval_with(1, 0)
    assert u.state[0].curve == pytest.approx(math.e, rel=1e-4)
    u.eval_with(-1, 0)
    assert u.state[0].curve == pytest.approx(1 / math.e, rel=1e-4)

def test_field_uses_hot_named_values():
    u = build_universe(["k = 2x", "y' = k"])
    u.ode_initial_conditions(0, 0)
    u.eval_with(3, 0, True)
    slope, curve = u.state[1]
    assert slope == 6
    assert curve == pytest.approx(9, rel=1e-4)

def test_reseeding_discards_previous_integrators():
    u = build_universe(["y' = 1", "y' = 2"])
    u.ode_initial_conditions(0, 0)
    first = {i: u._integrators[i] for i in u.field_indices}
    u.ode_initial_conditions(10, 0)
    assert all(u._integrators[i] is not first[i] for i in u.field_indices)
    u.eval_with(1, 0)
    assert u.state[0].curve == pytest.approx(11, rel=1e-6)
    assert u.state[1].curve == pytest.approx(12, rel=1e-6)

def test_views():
    u = build_universe(["a=1", "y=x", "y'=x", "f(s)=s", "x a"])
    assert u.curve_indices == [1, 4]
    assert u.field_indices == [2]

def test_cycle_aborts_build():
    with pytest.raises(CircularDependency) as exc:
        build_universe(["a = b + 1", "b = a * 2"])
    assert set(exc.value.names) == {"a", "b"}

def test_unsupported_feature_aborts_build():
    with pytest.raises(UnsupportedFeature):
        build_universe(["y' = x", "a = y'"])

def test_syntax_error_propagates():
    with pytest.raises(SyntaxError):
        build_universe(["a = 1", "3x = 2"])
    with pytest.raises(ExpressionSyntaxError):
        build_universe(["a = b = c"])

def test_undefined_symbol_is_undefined_state():
    u = build_universe(["b = q + 1", "b * 2"])
    assert u.state[0] is None
    assert u.state[1] is None

def test_oversized_integer_does_not_abort_build():
    u = build_universe(["a = 10^400", "b = 2", "2^2000 + 0*x"])
    assert math.isnan(u.state[0])
    assert u.state[1] == 2.0
    u.eval_with(1, 0)
    assert math.isnan(u.state[2])

def test_evaluation_type_errors_propagate():
    u = build_universe(["f(s) = s*x", "f(1, 2)"])
    with pytest.raises(TypeError):
        u.eval_with(1, 1)

def test_build_trace_records_stages():
    u = build_universe(["a=1", "a x"])
    kinds = [s["kind"] for s in u.trace]
    assert kinds.count("parsed") == 2
    for kind in ("dependency_order", "hotness", "promoted", "cold_eval"):
        assert kind in kinds
    assert u.tracer.find("promoted") == [{"indices": [1]}]
