import json

import pytest
from pydantic import ValidationError

from eqgraph.config import load_settings
from eqgraph.tracer import Tracer
from eqgraph.universe import build_universe


def test_defaults_with_empty_environment():
    s = load_settings({})
    assert s.ode.method == "RK45"
    assert s.ode.rtol == 1e-6
    assert s.sampler.micro_divisions == 120
    assert s.sampler.macro_divisions == 6
    assert s.trace_dir == "traces"

def test_environment_overrides_are_coerced():
    s = load_settings({
        "EQGRAPH_ODE_METHOD": "DOP853",
        "EQGRAPH_ODE_RTOL": "1e-8",
        "EQGRAPH_CHUNK_WIDTH": "2.5",
        "EQGRAPH_MICRO_DIVISIONS": "30",
        "TRACE_DIR": "/tmp/eq",
    })
    assert s.ode.method == "DOP853"
    assert s.ode.rtol == 1e-8
    assert s.sampler.chunk_width == 2.5
    assert s.sampler.micro_divisions == 30
    assert s.trace_dir == "/tmp/eq"

def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        load_settings({"EQGRAPH_ODE_RTOL": "-1"})
    with pytest.raises(ValidationError):
        load_settings({"EQGRAPH_MACRO_DIVISIONS": "zero"})

def test_settings_reach_the_integrator():
    s = load_settings({"EQGRAPH_ODE_METHOD": "DOP853"})
    u = build_universe(["y' = 2x"], settings=s)
    u.ode_initial_conditions(0, 0)
    assert u.eval_with(2, 0).state[0].curve == pytest.approx(4.0, rel=1e-6)

def test_trace_saved_as_json(tmp_path):
    tracer = Tracer()
    build_universe(["a=1", "y=a x"], tracer=tracer)
    path = tracer.save(str(tmp_path / "traces"))
    assert path.endswith(".json")
    with open(path, encoding="utf-8") as f:
        steps = json.load(f)
    assert steps[0]["kind"] == "parsed"
    assert steps[0]["detail"]["name"] == "a"
