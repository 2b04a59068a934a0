# -----------------------------------------------------------------------------
# Tracing utility
# Purpose:
#   Append-only trace collector recording structured steps (parse results,
#   evaluation order, hotness decisions) while a universe is built. Produces
#   a JSON-friendly list suitable for API responses, and can persist it as a
#   timestamped JSON file for debugging.
# -----------------------------------------------------------------------------

from __future__ import annotations
import json
import os
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

@dataclass
class TraceStep:
    # Build stage label ("parsed", "dependency_order", ...) and its payload
    kind: str
    detail: Dict[str, Any] = field(default_factory=dict)

class Tracer:
    def __init__(self):
        self._log: List[TraceStep] = []

    def add(self, kind: str, detail: Dict[str, Any]) -> None:
        self._log.append(TraceStep(kind=kind, detail=detail))

    def find(self, kind: str) -> List[Dict[str, Any]]:
        return [step.detail for step in self._log if step.kind == kind]

    def steps(self) -> List[Dict[str, Any]]:
        return [asdict(step) for step in self._log]

    def save(self, directory: str, prefix: str = "universe") -> str:
        """Write the steps to <directory>/<prefix>_<utc timestamp>.json and return the path."""
        os.makedirs(directory, exist_ok=True)
        stamp = time.strftime("%Y%m%d_%H%M%SZ", time.gmtime())
        fpath = os.path.join(directory, f"{prefix}_{stamp}.json")
        with open(fpath, "w", encoding="utf-8") as f:
            json.dump(self.steps(), f, indent=2, default=str)
        return fpath
