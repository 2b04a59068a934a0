# --- eqgraph: Universe API (FastAPI) ------------------------------------------
# Purpose: Minimal API that (1) builds a universe from a list of expressions
# and reports its metadata, cold state and build trace, then (2) samples a
# chunk of the plane for a renderer.
# Fallback: when a new input list fails to parse, the last universe that
# built successfully is served instead (flagged stale).
# ------------------------------------------------------------------------------

from __future__ import annotations
import math
import os
from typing import Any, Dict, List, Optional, Tuple
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from eqgraph.config import load_settings
from eqgraph.dependencies import (
    CircularDependency,
    DependencyError,
    DuplicateAssignment,
    UnsupportedFeature,
)
from eqgraph.sampler import Sampler
from eqgraph.types import FieldState
from eqgraph.universe import Universe, build_universe

# Load .env for external configuration (tolerances, chunk sizes, trace dir)
load_dotenv()
SETTINGS = load_settings()
SAVE_TRACES = os.getenv("SAVE_TRACES", "0") == "1"

app = FastAPI(title="eqgraph Universe API")

# Last successfully built universe and the inputs it came from
_last: Optional[Tuple[List[str], Universe]] = None

# ----------------------------- Schemas ----------------------------------------
class UniverseRequest(BaseModel):
    # Ordered expression lines; blank strings are valid no-op slots.
    expressions: List[str]

class InitialCondition(BaseModel):
    y0: float = 0.0
    t0: float = 0.0

class SampleRequest(UniverseRequest):
    # Integer chunk coordinates (cx, cy) plus an optional IVP seed for fields.
    chunk: Tuple[int, int] = (0, 0)
    initial_condition: Optional[InitialCondition] = None

class MetadataOut(BaseModel):
    type: str
    hot: bool
    dependent_var: Optional[str] = None

class UniverseOut(BaseModel):
    ok: bool = True
    stale: bool = False
    metadata: List[MetadataOut]
    state: List[Any]
    priority: List[int]
    trace: List[Dict[str, Any]] = Field(default_factory=list)

# ----------------------------- Helpers ----------------------------------------
def _jsonable(value: Any) -> Any:
    """Numbers stay numbers, non-finite floats and callables become null, field pairs become lists."""
    if isinstance(value, FieldState):
        return [_jsonable(value.slope), _jsonable(value.curve)]
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    return None

def _dependency_detail(e: DependencyError) -> Dict[str, Any]:
    # Typed payload so a client can highlight the offending lines
    if isinstance(e, CircularDependency):
        return {"kind": "circular_dependency", "message": str(e), "names": list(e.names), "indices": list(e.indices)}
    if isinstance(e, UnsupportedFeature):
        return {"kind": "unsupported_feature", "message": str(e), "indices": [e.expr_index], "feature": e.feature}
    if isinstance(e, DuplicateAssignment):
        return {"kind": "duplicate_assignment", "message": str(e), "names": [e.name], "indices": list(e.indices)}
    return {"kind": "dependency_error", "message": str(e)}

def _universe_for(expressions: List[str]) -> Tuple[Universe, bool]:
    """
    Build a universe, falling back to the previous one on parse/type errors.
    Returns (universe, stale).
    """
    global _last
    try:
        universe = build_universe(expressions, settings=SETTINGS)
    except DependencyError as e:
        raise HTTPException(status_code=422, detail=_dependency_detail(e))
    except (SyntaxError, TypeError) as e:
        if _last is None:
            raise HTTPException(status_code=400, detail={"kind": "parse_error", "message": str(e)})
        return _last[1], True
    _last = (list(expressions), universe)
    if SAVE_TRACES:
        universe.tracer.save(SETTINGS.trace_dir)
    return universe, False

def reset_state():
    # Forget the fallback universe (used between API tests)
    global _last
    _last = None

# ----------------------------- Routes -----------------------------------------
@app.get("/health")
def health(): return {"ok": True}

@app.post("/universe", response_model=UniverseOut)
def universe(req: UniverseRequest):
    """
    Build (or fall back to) a universe and report its static structure:
    per-expression metadata, cold state (hot entries are null), priority
    order and the build trace.
    """
    u, stale = _universe_for(req.expressions)
    return UniverseOut(
        stale=stale,
        metadata=[MetadataOut(type=m.type, hot=m.hot, dependent_var=m.dependent_var) for m in u.metadata],
        state=[_jsonable(s) for s in u.state],
        priority=u.priority_indices,
        trace=u.trace,
    )

@app.post("/sample")
def sample(req: SampleRequest):
    """
    Sample one chunk: curve rows, integrated field rows and the slope grid.
    Fields are integrated only when an initial condition is supplied.
    """
    u, stale = _universe_for(req.expressions)
    if req.initial_condition is not None:
        u.ode_initial_conditions(req.initial_condition.y0, req.initial_condition.t0)
    chunk = Sampler(u, SETTINGS.sampler).build_chunk(*req.chunk)
    return {
        "ok": True,
        "stale": stale,
        "origin": list(chunk.origin),
        "xs": chunk.xs,
        "grid_xs": chunk.grid_xs,
        "ys": chunk.ys,
        "curve_indices": chunk.curve_indices,
        "field_indices": chunk.field_indices,
        "rows": [[_jsonable(v) for v in row] for row in chunk.rows],
        "ivp_rows": [[_jsonable(v) for v in row] for row in chunk.ivp_rows],
        "grid": [[[_jsonable(v) for v in cell] for cell in column] for column in chunk.grid],
    }
