# -----------------------------------------------------------------------------
# Dependency graph builder & analyzer
# Purpose:
#   Map every expression to the free symbols it references, reject inputs the
#   engine cannot evaluate (cycles, implicit differential equations, duplicate
#   names) and rank expressions so that each one is evaluated after all of
#   its dependencies.
# Ranking:
#   degree(controlled variable | unknown name | no dependencies) = 0
#   degree(name) = 1 + max(degree(dep) for dep in dependencies)
#   Keys are sorted ascending by degree (stable).
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Dict, List, Tuple

from .expressions import ParsedExpression
from .types import CONTROLLED_VARIABLES, DERIVATIVE, DependencyRecord

DependencyMap = Dict[str, DependencyRecord]


class DependencyError(Exception):
    # Fatal to universe construction; no partial universe is produced.
    pass


class CircularDependency(DependencyError):
    """
    A dependency chain revisits a name that is still being resolved.
    `names` / `indices` hold (dependent, dependency) for the closing edge.
    """
    def __init__(self, names: Tuple[str, str], indices: Tuple[int, int]):
        self.names = names
        self.indices = indices
        super().__init__(
            f"Circular dependency: '{names[0]}' (expression {indices[0]}) "
            f"depends on '{names[1]}' (expression {indices[1]})"
        )


class UnsupportedFeature(DependencyError):
    def __init__(self, expr_index: int, feature: str):
        self.expr_index = expr_index
        self.feature = feature
        super().__init__(f"Unsupported feature in expression {expr_index}: {feature}")


class DuplicateAssignment(DependencyError):
    def __init__(self, name: str, indices: Tuple[int, int]):
        self.name = name
        self.indices = indices
        super().__init__(
            f"'{name}' is assigned by both expression {indices[0]} and expression {indices[1]}"
        )


def record_key(expr: ParsedExpression) -> str:
    """
    Key of an expression in the dependency map.
      - ordinary assignments / functions: their name (referenceable)
      - curves and fields (x=, y=, t=, y'=): "<name>@<index>"; several lines
        may draw y and none of them can be referenced by name
      - bare and empty expressions: their stringified index
    """
    if expr.binding is not None:
        return expr.binding
    if expr.name is not None:
        return f"{expr.name}@{expr.index}"
    return str(expr.index)


def build_dependency_map(expressions: List[ParsedExpression]) -> Tuple[DependencyMap, List[int]]:
    """
    Build {key: DependencyRecord} plus the list of formula indices (bare and
    empty expressions, which nothing can depend on).
    """
    dep_map: DependencyMap = {}
    formulae: List[int] = []
    for expr in expressions:
        key = record_key(expr)
        if key in dep_map:
            raise DuplicateAssignment(key, (dep_map[key].expr_index, expr.index))
        dep_map[key] = DependencyRecord(dependencies=expr.symbols(), expr_index=expr.index)
        if expr.name is None:
            formulae.append(expr.index)
    return dep_map, formulae


def check_supported(dep_map: DependencyMap) -> None:
    # Only isolated first-order ODEs (y' alone on the left) are supported
    for record in dep_map.values():
        if DERIVATIVE in record.dependencies:
            raise UnsupportedFeature(
                record.expr_index,
                f"expressions depending on {DERIVATIVE} (implicit differential equations)",
            )


def dependency_analysis(dep_map: DependencyMap) -> List[str]:
    """
    Return the keys of `dep_map` ordered so that every key's dependencies
    appear before it. Raises CircularDependency on the first cycle found.
    """
    degrees: Dict[str, int] = {}

    def degree(name: str, path: List[str]) -> int:
        if name in CONTROLLED_VARIABLES:
            return 0
        record = dep_map.get(name)
        if record is None:
            return 0
        if name in degrees:
            return degrees[name]
        path.append(name)
        best = 0
        for dep in record.dependencies:
            # Checked against the active path before any memo lookup
            if dep in path:
                owner = dep_map[dep].expr_index
                raise CircularDependency((name, dep), (record.expr_index, owner))
            best = max(best, 1 + degree(dep, path))
        path.pop()
        degrees[name] = best
        return best

    return sorted(dep_map.keys(), key=lambda key: degree(key, []))
