# -----------------------------------------------------------------------------
# Settings
# Purpose:
#   Typed runtime configuration read from environment variables (a `.env`
#   file is loaded by the API entry point). Every value has a default so the
#   engine works with an empty environment.
# Variables:
#   EQGRAPH_ODE_METHOD       scipy solve_ivp method      (RK45)
#   EQGRAPH_ODE_RTOL         relative tolerance          (1e-6)
#   EQGRAPH_ODE_ATOL         absolute tolerance          (1e-9)
#   EQGRAPH_CHUNK_WIDTH      world width of one chunk    (5.0)
#   EQGRAPH_MICRO_DIVISIONS  curve samples per chunk row (120)
#   EQGRAPH_MACRO_DIVISIONS  field samples per chunk axis (6)
#   TRACE_DIR                where build traces are saved (traces)
# -----------------------------------------------------------------------------

from __future__ import annotations
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field


class OdeSettings(BaseModel):
    method: str = "RK45"
    rtol: float = Field(default=1e-6, gt=0)
    atol: float = Field(default=1e-9, gt=0)


class SamplerSettings(BaseModel):
    chunk_width: float = Field(default=5.0, gt=0)
    micro_divisions: int = Field(default=120, ge=1)
    macro_divisions: int = Field(default=6, ge=1)


class Settings(BaseModel):
    ode: OdeSettings = Field(default_factory=OdeSettings)
    sampler: SamplerSettings = Field(default_factory=SamplerSettings)
    trace_dir: str = "traces"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from `environ` (defaults to os.environ); pydantic validates and coerces."""
    env = os.environ if environ is None else environ
    ode = {
        "method": env.get("EQGRAPH_ODE_METHOD"),
        "rtol": env.get("EQGRAPH_ODE_RTOL"),
        "atol": env.get("EQGRAPH_ODE_ATOL"),
    }
    sampler = {
        "chunk_width": env.get("EQGRAPH_CHUNK_WIDTH"),
        "micro_divisions": env.get("EQGRAPH_MICRO_DIVISIONS"),
        "macro_divisions": env.get("EQGRAPH_MACRO_DIVISIONS"),
    }
    data = {
        "ode": {k: v for k, v in ode.items() if v is not None},
        "sampler": {k: v for k, v in sampler.items() if v is not None},
    }
    if env.get("TRACE_DIR"):
        data["trace_dir"] = env["TRACE_DIR"]
    return Settings(**data)
