# -----------------------------------------------------------------------------
# Chunk sampler
# Purpose:
#   Sample a universe over square world-space chunks for a renderer:
#     - rows: curves sampled at `micro_divisions` x positions along the chunk
#       (y fixed at 0), plus the integrated curve of every seeded field
#     - grid: field slopes sampled on a `macro_divisions` × `macro_divisions`
#       lattice covering the chunk
#   Chunks are addressed by integer coordinates; chunk (cx, cy) covers
#   [cx*w, (cx+1)*w) × [cy*w, (cy+1)*w) for chunk width w.
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .config import SamplerSettings
from .types import FieldState
from .universe import Universe

@dataclass
class ChunkState:
    origin: Tuple[int, int]
    xs: List[float]                                   # micro x positions (world)
    ys: List[float]                                   # macro y positions (world)
    grid_xs: List[float]                              # macro x positions (world)
    rows: List[List[Optional[float]]]                 # [micro x][curve]
    ivp_rows: List[List[Optional[float]]]             # [micro x][field]
    grid: List[List[List[Optional[float]]]]           # [macro x][macro y][field]
    curve_indices: List[int] = field(default_factory=list)
    field_indices: List[int] = field(default_factory=list)


def _scalar(value: Any) -> Optional[float]:
    # Renderers only draw finite numbers; callables and undefined become None
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    return None


class Sampler:
    def __init__(self, universe: Universe, settings: Optional[SamplerSettings] = None):
        self.universe = universe
        self.settings = settings or SamplerSettings()

    def chunk_coord(self, x: float, y: float) -> Tuple[int, int]:
        w = self.settings.chunk_width
        return math.floor(x / w), math.floor(y / w)

    def chunk_origin(self, cx: int, cy: int) -> Tuple[float, float]:
        w = self.settings.chunk_width
        return cx * w, cy * w

    def _axis(self, start: float, divisions: int) -> List[float]:
        step = self.settings.chunk_width / divisions
        return [start + k * step for k in range(divisions)]

    def build_chunk(self, cx: int, cy: int) -> ChunkState:
        u = self.universe
        x0, y0 = self.chunk_origin(cx, cy)
        curves, fields = u.curve_indices, u.field_indices

        xs = self._axis(x0, self.settings.micro_divisions)
        rows: List[List[Optional[float]]] = []
        ivp_rows: List[List[Optional[float]]] = []
        for x in xs:
            u.eval_with(x, 0)
            rows.append([_scalar(u.state[i]) for i in curves])
            ivp_rows.append([_scalar(u.state[i].curve) if isinstance(u.state[i], FieldState) else None
                             for i in fields])

        grid_xs = self._axis(x0, self.settings.macro_divisions)
        ys = self._axis(y0, self.settings.macro_divisions)
        grid: List[List[List[Optional[float]]]] = []
        for x in grid_xs:
            column = []
            for y in ys:
                # enable vector fields
                u.eval_with(x, y, True)
                column.append([_scalar(u.state[i].slope) for i in fields])
            grid.append(column)

        return ChunkState(
            origin=(cx, cy), xs=xs, ys=ys, grid_xs=grid_xs,
            rows=rows, ivp_rows=ivp_rows, grid=grid,
            curve_indices=curves, field_indices=fields,
        )
