# -----------------------------------------------------------------------------
# Expression sheet loader & accessor
# Purpose: Parse a YAML sheet of graphed expressions (the sidebar of a
# graphing calculator) into typed entries and build a universe from them.
# Expected YAML shape:
#   expressions:
#     - expression: "a = 2"
#     - expression: "y = a x^2"
#       color: "#1f77b4"
#       visible: true
#     - "y' = x"            # bare strings are accepted as entries
# -----------------------------------------------------------------------------

from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .config import Settings
from .universe import Universe, build_universe

# Domain-specific error to signal malformed sheet inputs
class SheetError(Exception): pass

@dataclass
class SheetEntry:
    expression: str = ""
    color: str = ""           # hex color code, empty for renderer default
    visible: bool = True      # hidden entries still define values
    key: str = field(default_factory=lambda: str(uuid.uuid4()))

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SheetEntry":
        if "key" in d:
            raise SheetError("Keys are generated internally and cannot be supplied by a sheet.")
        return SheetEntry(
            expression=str(d.get("expression") or ""),
            color=str(d.get("color") or ""),
            visible=bool(d.get("visible", True)),
        )

@dataclass
class Sheet:
    entries: List[SheetEntry]

    @staticmethod
    def from_yaml_dict(d: Optional[Dict[str, Any]]) -> "Sheet":
        items = (d or {}).get("expressions") or []
        if not isinstance(items, list):
            raise SheetError("'expressions' must be a list.")
        entries = []
        for item in items:
            if item is None or isinstance(item, str):
                entries.append(SheetEntry(expression=item or ""))
            elif isinstance(item, dict):
                entries.append(SheetEntry.from_dict(item))
            else:
                raise SheetError(f"Unsupported sheet entry: {item!r}")
        return Sheet(entries=entries)

    @staticmethod
    def from_yaml_text(text: str) -> "Sheet":
        # yaml.safe_load: no arbitrary object constructors
        return Sheet.from_yaml_dict(yaml.safe_load(text))

    @staticmethod
    def from_file(path: str) -> "Sheet":
        with open(path, "r", encoding="utf-8") as f:
            return Sheet.from_yaml_text(f.read())

    @property
    def expressions(self) -> List[str]:
        return [e.expression for e in self.entries]

    @property
    def visible_indices(self) -> List[int]:
        return [i for i, e in enumerate(self.entries) if e.visible]

    def build_universe(self, settings: Optional[Settings] = None) -> Universe:
        return build_universe(self.expressions, settings=settings)
